"""
Thin JSON-over-HTTP client shared by the catalog web-service fetchers.

No retries happen here: a failed call raises APICommunicationError and the
catalog library drops the artist it was resolving.
"""

import logging
from typing import Any, Dict, Optional

import requests

from utils.exceptions import APICommunicationError

logger = logging.getLogger(__name__)


class CatalogHTTPClient:
    """GET-only JSON client with a per-call timeout and request statistics."""

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/json",
        })
        if headers:
            self.session.headers.update(headers)

        self.total_requests = 0
        self.failed_requests = 0

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Perform a GET request and decode the JSON body.

        Args:
            path: Path relative to the base URL
            params: Query parameters

        Returns:
            Decoded JSON object

        Raises:
            APICommunicationError: On transport errors, HTTP errors or invalid JSON
        """
        url = f"{self.base_url}{path}"
        self.total_requests += 1
        logger.debug(f"GET {url} {params or {}}")

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            self.failed_requests += 1
            raise APICommunicationError(f"GET {url} timed out after {self.timeout} seconds")
        except requests.exceptions.RequestException as e:
            self.failed_requests += 1
            raise APICommunicationError(f"GET {url} failed: {e}")

        if response.status_code >= 400:
            self.failed_requests += 1
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            raise APICommunicationError(
                f"GET {url} failed: {response.status_code} {payload}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            self.failed_requests += 1
            raise APICommunicationError(f"GET {url} returned invalid JSON: {e}")

        if not isinstance(data, dict):
            self.failed_requests += 1
            raise APICommunicationError(f"GET {url} returned unexpected {type(data).__name__}")

        return data

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'total_requests': self.total_requests,
            'failed_requests': self.failed_requests,
        }
