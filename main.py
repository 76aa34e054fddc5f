#!/usr/bin/env python3
"""
releases-watcher: tracks a local music collection against an external release
catalog and reports the releases the collection is missing.

Steps run in a fixed order and may be combined:
local library scan, catalog sync, settings sheet update, diff/report.
"""

import argparse
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Optional

# Enable UTF-8 mode for universal file compatibility
if not os.environ.get('PYTHONUTF8'):
    os.environ['PYTHONUTF8'] = '1'

from dotenv import load_dotenv

from api.discogs import DiscogsAPI
from api.musicbrainz import MusicBrainzAPI
from api.rate_limiter import RateLimiter
from caching.cache_manager import FreshnessCache
from catalog.base import CatalogLibrary, Freshness
from catalog.discogs import DiscogsLibrary
from catalog.musicbrainz import MusicBrainzLibrary
from filesystem.scanner import DirectoryScanner
from pipeline.differ import Differ
from pipeline.orchestrator import LibraryWatcher
from reporting.csv_report import write_matched_csv
from reporting.sheets import GoogleSheets
from storage.database import LibraryDatabase
from utils.config_loader import SUPPORTED_PROVIDERS, load_config
from utils.exceptions import ConfigurationError, ReleasesWatcherError
from utils.logging_config import configure_library_logging, get_logger, setup_logging


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Find catalog releases missing from a local music collection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --update-local                          # Scan the local library
  %(prog)s --update-actual --provider discogs      # Sync releases from Discogs
  %(prog)s --update-local --update-actual --diff   # Full run
  %(prog)s --diff --out releases.csv               # Write the report to CSV
  %(prog)s --exclude-album "Queen" "Live Killers"  # Never report an album
        """
    )

    parser.add_argument(
        "--update-local",
        action="store_true",
        help="Scan the library and publish a new local version"
    )

    parser.add_argument(
        "--update-actual",
        action="store_true",
        help="Fetch releases of every local artist and publish a new actual version"
    )

    parser.add_argument(
        "--update-settings",
        action="store_true",
        help="Add newly seen local artists to the settings sheet"
    )

    parser.add_argument(
        "--diff",
        action="store_true",
        help="Report catalog releases missing from the local library"
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: ./config.yaml)"
    )

    parser.add_argument(
        "--provider",
        choices=SUPPORTED_PROVIDERS,
        help="Catalog provider (default: catalog.provider from config)"
    )

    parser.add_argument(
        "--out",
        type=Path,
        help="Write the matched releases table to this CSV file"
    )

    parser.add_argument(
        "--exclude-artist",
        metavar="NAME",
        action="append",
        default=[],
        help="Never track this artist (may be repeated)"
    )

    parser.add_argument(
        "--exclude-album",
        metavar=("ARTIST", "ALBUM"),
        nargs=2,
        action="append",
        default=[],
        help="Never report this album (may be repeated)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args(argv)
    if not (args.update_local or args.update_actual or args.update_settings or args.diff
            or args.exclude_artist or args.exclude_album):
        parser.error("nothing to do: pass at least one of --update-local, --update-actual, "
                     "--update-settings, --diff, --exclude-artist, --exclude-album")
    return args


def install_signal_handlers(cancel_event: threading.Event):
    """Translate SIGINT/SIGTERM into a cancellation request."""
    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        print("\nCancelling, waiting for in-flight work to finish...", file=sys.stderr)
        cancel_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def build_library(config: Dict[str, Any], db: LibraryDatabase, provider: str) -> CatalogLibrary:
    """Construct the catalog library for ``provider`` with its own cache and limiter."""
    catalog = config['catalog']
    cache = FreshnessCache(db, logger=get_logger('FreshnessCache'))
    limiter = RateLimiter.per_minute(
        catalog['requests_per_minute'], catalog['burst'], name=provider
    )
    freshness = Freshness.from_config(catalog['freshness_days'])

    if provider == 'musicbrainz':
        api = MusicBrainzAPI.create(
            catalog['user_agent'], catalog['musicbrainz_contact'], catalog['timeout_seconds']
        )
        return MusicBrainzLibrary(api, cache, limiter, freshness,
                                  logger=get_logger('MusicBrainzLibrary'))
    if provider == 'discogs':
        api = DiscogsAPI.create(
            catalog['discogs_token'], catalog['user_agent'], catalog['timeout_seconds']
        )
        return DiscogsLibrary(api, cache, limiter, freshness,
                              logger=get_logger('DiscogsLibrary'))
    raise ConfigurationError(f"Unknown catalog provider: {provider}")


def build_sheets(config: Dict[str, Any]) -> Optional[GoogleSheets]:
    sheets = config['sheets']
    if not sheets['spreadsheet_id']:
        return None
    return GoogleSheets.from_config(
        Path(sheets['credentials_file']), sheets['spreadsheet_id'],
        logger=get_logger('GoogleSheets'),
    )


def run(args: argparse.Namespace, config: Dict[str, Any], cancel_event: threading.Event) -> int:
    logger = get_logger('main')
    db = LibraryDatabase(Path(config['storage']['database_file']).expanduser(),
                         logger=get_logger('LibraryDatabase'))

    for artist in args.exclude_artist:
        db.add_excluded_artist(artist)
        logger.info(f"Excluded artist: {artist}")
    for artist, album in args.exclude_album:
        db.add_excluded_album(artist, album)
        logger.info(f"Excluded album: {artist} - {album}")

    library_config = config['library']
    provider = args.provider or config['catalog']['provider']

    library = None
    if args.update_actual:
        library = build_library(config, db, provider)

    if args.update_local and not library_config['root']:
        raise ConfigurationError("library.root must be set to update the local library")

    watcher = LibraryWatcher(
        db=db,
        scanner=DirectoryScanner(logger=get_logger('DirectoryScanner')),
        library=library,
        root=Path(library_config['root']).expanduser() if library_config['root'] else Path.cwd(),
        excluded_path=(Path(library_config['excluded_path']).expanduser()
                       if library_config['excluded_path'] else None),
        read_workers=library_config['read_workers'],
        channel_capacity=config['catalog']['channel_capacity'],
        progress_every=config['sync']['progress_every'],
        keep_versions=config['storage']['keep_versions'],
        logger=get_logger('LibraryWatcher'),
    )

    if args.update_local and not cancel_event.is_set():
        watcher.update_local_library(cancel_event)

    if args.update_actual and not cancel_event.is_set():
        watcher.update_actual_library(cancel_event)

    sheets = None
    if args.update_settings or args.diff:
        sheets = build_sheets(config)

    if args.update_settings and not cancel_event.is_set():
        if sheets is None:
            raise ConfigurationError("sheets.spreadsheet_id must be set to update settings")
        sheets.update_artists_in_settings(db.get_local_artists())

    if args.diff and not cancel_event.is_set():
        differ = Differ(db, settings=sheets, cutoff_year=config['diff']['cutoff_year'],
                        logger=get_logger('Differ'))
        for album in differ.diff():
            year = album.year or '----'
            logger.info(f"New {album.kind.value.lower()}: {album.artist} - {album.name} "
                        f"({year}) {album.url or ''}".rstrip())

        if sheets is not None or args.out:
            matched = differ.matched()
            if args.out:
                write_matched_csv(matched, args.out, logger=get_logger('CsvReport'))
            if sheets is not None:
                sheets.update_releases(matched)

    if cancel_event.is_set():
        logger.warning("Run cancelled")
        return 1

    logger.info(f"Done. Statistics: {watcher.get_statistics()}")
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    try:
        args = parse_arguments(argv)

        load_dotenv()

        if args.config:
            config_path = args.config
        else:
            script_dir = Path(__file__).parent
            config_path = script_dir / "config.yaml"

        config = load_config(config_path)

        log_level = "DEBUG" if args.verbose else config['logging']['level']
        log_file = Path(config['logging']['file']).expanduser() if config['logging']['file'] else None
        logger = setup_logging(log_level, log_file)
        configure_library_logging()

        if not config_path.exists():
            logger.info(f"Config file not found at {config_path}, using defaults")
        else:
            logger.info(f"Loaded config from: {config_path}")

        cancel_event = threading.Event()
        install_signal_handlers(cancel_event)

        return run(args, config, cancel_event)

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        return 1
    except ReleasesWatcherError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        # Handle encoding errors in the exception message itself
        try:
            error_msg = str(e)
        except (UnicodeDecodeError, UnicodeEncodeError):
            error_msg = repr(e).encode('utf-8', errors='replace').decode('utf-8')

        print(f"Unexpected error: {error_msg}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
