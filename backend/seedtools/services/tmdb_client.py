"""
TMDB Client for seed-tools

Resolves a classified video release to its TMDB id and, from there, to IMDb and TVDB
ids. The TMDB id decides category mapping on some trackers, so search failures are
raised; external id failures are not.

Usage Example:
    client = TMDBClient(api_key)
    tmdb_id = client.search_id("Movie Title", "2019", "movie")   # 0 when nothing matched
    imdb_id, tvdb_id = client.external_ids(tmdb_id, "movie")       # ("1234567", None)
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

import requests

from seedtools.config import Config
from seedtools.services.exceptions import (
    MetadataLookupFailure,
    NetworkRetryableError,
    retry_on_network_error,
)
from seedtools.utils.tmdb_auth import format_tmdb_request, mask_credential

logger = logging.getLogger(__name__)


TMDB_API_BASE = "https://api.themoviedb.org/3"

_SEASON_TAIL_RE = re.compile(r"(?i)(S\d{2}.*)")
_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")


def sanitize_search_title(title: str, media_type: str) -> str:
    """
    Title as TMDB expects it.

    tv: drop everything from the first SXX token, then the year.
    movie: drop the year.
    """
    if media_type == "tv":
        title = _SEASON_TAIL_RE.sub("", title, count=1).strip()
    return _YEAR_RE.sub("", title, count=1).strip()


class TMDBClient:
    """
    Thin TMDB v3 API client.

    The credential may be a v3 API key (sent as api_key) or a v4 read access token
    (sent as a Bearer header).

    Args:
        api_key: TMDB credential
        session: Optional requests.Session (tests inject a mock)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: int = Config.TMDB_API_TIMEOUT,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    @retry_on_network_error(max_retries=Config.MAX_RETRIES)
    def _get(self, path: str, extra_params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            params, headers = format_tmdb_request(self.api_key)
        except ValueError as e:
            raise MetadataLookupFailure(f"Invalid TMDB credential: {e}") from e

        params.update(extra_params or {})
        url = f"{TMDB_API_BASE}/{path}"
        logged_params = {k: v for k, v in params.items() if k != 'api_key'}
        logger.debug(f"TMDB GET {url} params={logged_params}")

        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise NetworkRetryableError(f"TMDB request failed: {e}", original_exception=e) from e
        except requests.exceptions.RequestException as e:
            raise MetadataLookupFailure(f"TMDB request failed: {e}") from e

        if response.status_code in (429, 502, 503, 504):
            raise NetworkRetryableError(f"TMDB temporarily unavailable (HTTP {response.status_code})")
        if response.status_code != 200:
            raise MetadataLookupFailure(f"TMDB API request failed with HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise MetadataLookupFailure(f"Failed to parse TMDB response: {e}") from e

    def search_id(self, title: str, year: Optional[str], media_type: str) -> int:
        """
        First search result's id, or 0 when TMDB knows nothing matching.

        Args:
            title: Classified release title
            year: Release year or None
            media_type: "movie" or "tv"

        Raises:
            MetadataLookupFailure: Transport, HTTP or parse failure
            NetworkRetryableError: Transient failure that outlived the retries
        """
        search_title = sanitize_search_title(title, media_type)
        year_param = "first_air_date_year" if media_type == "tv" else "year"

        logger.info(f"Searching TMDB for: '{search_title}' ({year or 'any year'}), type={media_type}")
        data = self._get(f"search/{media_type}", {"query": search_title, year_param: year or ""})

        results = data.get("results") or []
        if not results:
            logger.info(f"No TMDB ID found for '{search_title}'")
            return 0

        best = results[0]
        tmdb_id = int(best.get("id") or 0)
        logger.info(f"Found TMDB match: {best.get('title', best.get('name'))} (ID: {tmdb_id})")
        return tmdb_id

    def external_ids(self, tmdb_id: int, media_type: str) -> Tuple[Optional[str], Optional[int]]:
        """
        (imdb id without the 'tt' prefix, tvdb id) for a TMDB id.

        Raises:
            MetadataLookupFailure: On any failure; callers degrade to (None, None)
        """
        if not tmdb_id:
            return None, None

        data = self._get(f"{media_type}/{tmdb_id}/external_ids")
        imdb = data.get("imdb_id")
        imdb_id = imdb[2:] if isinstance(imdb, str) and imdb.startswith("tt") else (imdb or None)
        tvdb = data.get("tvdb_id")
        tvdb_id = int(tvdb) if isinstance(tvdb, int) or (isinstance(tvdb, str) and tvdb.isdigit()) else None

        logger.info(f"Fetched external ids for TMDB {tmdb_id}: imdb={imdb_id}, tvdb={tvdb_id}")
        return imdb_id, tvdb_id

    def __repr__(self) -> str:
        return f"<TMDBClient(api_key='{mask_credential(self.api_key)}')>"
