"""GitHub API client.

Two endpoints are used:
- GraphQL `viewer.repositories` for the paginated bulk walk that fills the cache
- REST `/search/repositories` for the live fallback search
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from .. import __version__
from ..sync.fetcher import Page
from ..utils.error_handling import FetchError, RateLimitError, SearchError

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 5

REPOSITORIES_QUERY = """
query RepoView($after: String, $first: Int!) {
  viewer {
    repositories(
      first: $first
      after: $after
      affiliations: [OWNER, COLLABORATOR, ORGANIZATION_MEMBER]
    ) {
      nodes {
        nameWithOwner
      }
      pageInfo {
        endCursor
        hasNextPage
      }
    }
  }
  rateLimit {
    cost
    remaining
    resetAt
  }
}
"""


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp as returned by GitHub (trailing Z allowed)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_rate_limited(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"


class GitHubClient:
    """Client for the GitHub GraphQL and REST APIs."""

    def __init__(
        self,
        token: str,
        graphql_url: str = "https://api.github.com/graphql",
        api_url: str = "https://api.github.com",
        page_size: int = 100,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize GitHub client.

        Args:
            token: API token sent as a bearer token
            graphql_url: GraphQL endpoint
            api_url: REST API base URL
            page_size: Repositories per GraphQL page (max 100)
            timeout: Request timeout in seconds
            session: Override the HTTP session (tests)
        """
        self.graphql_url = graphql_url
        self.api_url = api_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": f"gh-alfred/{__version__}",
            }
        )

    # === Bulk walk ===

    def fetch_page(self, cursor: Optional[str]) -> Page:
        """Fetch one page of the signed-in user's repositories.

        Args:
            cursor: Cursor returned with the previous page, None for the first page

        Returns:
            Page with repository names, next cursor and rate-limit counters

        Raises:
            RateLimitError: If GitHub rejected the request for rate limiting
            FetchError: On network, HTTP status or payload errors
        """
        payload = {
            "query": REPOSITORIES_QUERY,
            "variables": {"after": cursor, "first": self.page_size},
        }

        try:
            response = self.session.post(self.graphql_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError("Failed to fetch repositories") from e

        if _is_rate_limited(response):
            raise RateLimitError(
                f"GitHub rate limit exhausted (HTTP {response.status_code})"
            )
        if not response.ok:
            raise FetchError(
                f"Failed to fetch repositories: HTTP {response.status_code} {response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise FetchError("Failed to fetch repositories: invalid JSON") from e

        return self._parse_page(body)

    def _parse_page(self, body: Dict[str, Any]) -> Page:
        """Extract names, cursor and rate-limit counters from a GraphQL response."""
        if not isinstance(body, dict):
            raise FetchError("Malformed GitHub response: expected a JSON object")
        errors = body.get("errors") or []
        if not isinstance(errors, list) or not all(isinstance(error, dict) for error in errors):
            raise FetchError(f"Malformed errors in GitHub response: {errors!r:.200}")
        if any(error.get("type") == "RATE_LIMITED" for error in errors):
            raise RateLimitError("GitHub GraphQL rate limit exhausted")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors)
            raise FetchError(f"GitHub GraphQL error: {messages}")

        data = body.get("data")
        if not data:
            raise FetchError("Missing data in GitHub response")

        try:
            connection = data["viewer"]["repositories"]
            nodes = connection["nodes"]
            if nodes is None:
                raise FetchError("Missing nodes in GitHub response")

            names = []
            for node in nodes:
                if not node or not node.get("nameWithOwner"):
                    raise FetchError("Missing nameWithOwner in GitHub response")
                names.append(node["nameWithOwner"])

            page_info = connection["pageInfo"]
            next_cursor = page_info.get("endCursor") if page_info.get("hasNextPage") else None

            rate_limit = data.get("rateLimit")
            if not rate_limit:
                raise FetchError("Missing rateLimit in GitHub response")

            return Page(
                entities=names,
                next_cursor=next_cursor,
                rate_remaining=int(rate_limit["remaining"]),
                rate_cost=int(rate_limit["cost"]),
                rate_reset_at=parse_timestamp(rate_limit["resetAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Malformed GitHub response: {e}") from e

    # === Live search ===

    def search(self, query: str) -> List[str]:
        """Search repositories matching the query, most starred first.

        Args:
            query: Search string

        Returns:
            Up to 5 repository full names

        Raises:
            SearchError: On network, HTTP status or payload errors
        """
        logger.info("Querying GitHub for repos matching %s", query)
        try:
            response = self.session.get(
                f"{self.api_url}/search/repositories",
                params={
                    "sort": "stars",
                    "order": "desc",
                    "per_page": str(SEARCH_LIMIT),
                    "q": query,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            items = response.json()["items"]
            return [item["full_name"] for item in items][:SEARCH_LIMIT]
        except requests.RequestException as e:
            raise SearchError("Failed to search GitHub repositories") from e
        except (KeyError, TypeError, ValueError) as e:
            raise SearchError(f"Malformed GitHub search response: {e}") from e
