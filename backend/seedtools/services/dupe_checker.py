"""
Duplicate Check Service

Asks a tracker's search endpoint whether a release already exists before anything
is built or uploaded. A hit redirects the run: the existing .torrent is downloaded
and injected into the clients instead of uploading a second copy.

Match policies:
    exact           normalized row name == normalized candidate name
    season_episode  row name contains the candidate's SxxEyy tag
    auto            season_episode when the candidate carries SxxEyy, exact otherwise

A failed query is never read as "no duplicate": it raises DedupeQueryError and the
run for that tracker stops.
"""

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx

from seedtools.config import Config
from seedtools.services.exceptions import (
    DedupeQueryError,
    NetworkRetryableError,
    TrackerAPIError,
    retry_on_network_error,
)
from seedtools.utils.release_naming import generate_release_name

logger = logging.getLogger(__name__)


SEARCH_PAGE_SIZE = 10
_SEASON_EPISODE_RE = re.compile(r"S(\d{2})E(\d{2})", re.IGNORECASE)


class DupeMatchPolicy(str, Enum):
    EXACT = "exact"
    SEASON_EPISODE = "season_episode"
    AUTO = "auto"


def season_episode(name: str) -> Optional[Tuple[int, int]]:
    match = _SEASON_EPISODE_RE.search(name)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def search_params(name: str, api_token: str) -> Dict[str, Any]:
    """Query parameters for the UNIT3D torrent search endpoint."""
    params: Dict[str, Any] = {
        "name": name,
        "perPage": SEARCH_PAGE_SIZE,
        "sortField": "name",
        "sortDirection": "asc",
        "api_token": api_token,
    }
    tag = season_episode(name)
    if tag:
        params["seasonNumber"], params["episodeNumber"] = tag
    return params


def result_rows(payload: Any) -> List[Dict[str, Any]]:
    """
    Rows of a search response: a bare list, or an object whose 'data' holds the list.

    Raises:
        DedupeQueryError: When the payload has neither shape
    """
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        raise DedupeQueryError("Unexpected search response shape", response_data=payload)
    return [row for row in payload if isinstance(row, dict)]


def matches(row_name: str, candidate: str, policy: DupeMatchPolicy) -> bool:
    if policy is DupeMatchPolicy.AUTO:
        policy = DupeMatchPolicy.SEASON_EPISODE if season_episode(candidate) else DupeMatchPolicy.EXACT

    if policy is DupeMatchPolicy.SEASON_EPISODE:
        tag = _SEASON_EPISODE_RE.search(candidate)
        return bool(tag) and tag.group(0).lower() in row_name.lower()

    return generate_release_name(row_name) == candidate


class DupeChecker:
    """
    Search-endpoint dedupe for one tracker.

    Args:
        search_url: Tracker search endpoint (UNIT3D /api/torrents/filter)
        api_token: Tracker API token
        policy: Match policy name or DupeMatchPolicy
        http_client: Optional httpx.Client (tests inject a mock)
    """

    def __init__(
        self,
        search_url: str,
        api_token: str,
        policy: str = DupeMatchPolicy.AUTO.value,
        http_client: Optional[httpx.Client] = None,
        timeout: int = Config.API_REQUEST_TIMEOUT,
    ):
        self.search_url = search_url
        self.api_token = api_token
        self.policy = DupeMatchPolicy(policy)
        self._client = http_client or httpx.Client(timeout=timeout, follow_redirects=True)

    @retry_on_network_error(max_retries=Config.MAX_RETRIES)
    def _search(self, name: str) -> List[Dict[str, Any]]:
        try:
            response = self._client.get(self.search_url, params=search_params(name, self.api_token))
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            raise NetworkRetryableError(f"Search request failed: {e}", original_exception=e) from e
        except httpx.HTTPError as e:
            raise DedupeQueryError(f"Search request failed: {e}") from e

        if response.status_code in (429, 502, 503, 504):
            raise NetworkRetryableError(f"Search temporarily unavailable (HTTP {response.status_code})")
        if not 200 <= response.status_code < 300:
            raise DedupeQueryError(
                "Search request rejected",
                status_code=response.status_code,
                response_data=response.text[:500],
            )

        try:
            return result_rows(response.json())
        except ValueError as e:
            raise DedupeQueryError(f"Search response is not JSON: {e}") from e

    def find_existing(self, name: str) -> Optional[str]:
        """
        Download link of an existing release matching name, or None.

        Raises:
            DedupeQueryError: The search could not be completed
        """
        candidate = generate_release_name(name)
        logger.info(f"Checking for duplicates of {candidate} ({self.policy.value} match)")

        try:
            rows = self._search(candidate)
        except NetworkRetryableError as e:
            raise DedupeQueryError(f"Search failed after retries: {e}") from e

        for row in rows:
            attributes = row.get("attributes") or {}
            row_name = attributes.get("name") or ""
            if row_name and matches(row_name, candidate, self.policy):
                link = attributes.get("download_link")
                if link:
                    logger.info(f"Duplicate found: {row_name}")
                    return link

        logger.info(f"No duplicate for {candidate} among {len(rows)} results")
        return None

    def download(self, link: str, destination: Path) -> Path:
        """
        Save an existing release's .torrent to destination.

        Raises:
            TrackerAPIError: Download failed
        """
        try:
            response = self._client.get(link)
        except httpx.HTTPError as e:
            raise TrackerAPIError(f"Torrent download failed: {e}") from e
        if response.status_code != 200:
            raise TrackerAPIError("Torrent download failed", status_code=response.status_code)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(response.content)
        except OSError as e:
            raise TrackerAPIError(f"Could not save torrent to {destination}: {e}") from e
        logger.info(f"Downloaded existing torrent to {destination}")
        return destination

    def close(self) -> None:
        self._client.close()
