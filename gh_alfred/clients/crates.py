"""crates.io API client used for the live package search."""

import logging
from typing import List, Optional

import requests

from .. import __version__
from ..utils.error_handling import SearchError

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 5


class CratesClient:
    """Client for the crates.io search API."""

    def __init__(
        self,
        api_url: str = "https://crates.io",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        # crates.io rejects requests without a descriptive user agent
        self.session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": f"gh-alfred/{__version__}",
            }
        )

    def search(self, query: str) -> List[str]:
        """Search crates matching the query.

        Args:
            query: Search string

        Returns:
            Up to 5 crate names, in crates.io relevance order

        Raises:
            SearchError: On network, HTTP status or payload errors
        """
        logger.info("Querying crates.io for crates matching %s", query)
        try:
            response = self.session.get(
                f"{self.api_url}/api/v1/crates",
                params={"page": "1", "per_page": str(SEARCH_LIMIT), "q": query},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SearchError("Failed to search crates") from e

        if not response.ok:
            raise SearchError(
                f"Failed to search crates: {response.status_code}, {response.text[:200]}"
            )

        try:
            crates = response.json()["crates"]
            return [crate["name"] for crate in crates][:SEARCH_LIMIT]
        except (KeyError, TypeError, ValueError) as e:
            raise SearchError(f"Malformed crates.io response: {e}") from e
