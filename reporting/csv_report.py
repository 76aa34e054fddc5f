"""
CSV export of the matched releases table.
"""

import csv
import logging
from pathlib import Path
from typing import List, Optional

from api.schemas import MatchedAlbum
from reporting.releases_table import build_release_rows
from utils.exceptions import ReportingError

logger = logging.getLogger(__name__)


def write_matched_csv(
    matched: List[MatchedAlbum],
    csv_file: Path,
    logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Write the matched table to ``csv_file``, replacing any previous content.

    The file is UTF-8 with a byte order mark so spreadsheet applications
    detect the encoding.
    """
    log = logger or logging.getLogger(__name__)
    csv_file = Path(csv_file)
    try:
        csv_file.parent.mkdir(parents=True, exist_ok=True)
        with open(csv_file, 'w', newline='', encoding='utf-8-sig') as f:
            writer = csv.writer(f)
            writer.writerows(build_release_rows(matched))
    except OSError as e:
        raise ReportingError(f"Cannot write report {csv_file}: {e}") from e

    log.info(f"Releases report saved to: {csv_file} ({len(matched)} rows)")
    return csv_file
