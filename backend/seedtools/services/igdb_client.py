"""
IGDB Client for seed-tools

Looks up the IGDB id and screenshots for a game release.

Lookup strategy:
    1. POST /v4/search with the sanitized title. When nothing comes back, drop the
       last word and retry until the title is exhausted; then give up with the
       fallback id.
    2. Refine the candidate ids through /v4/games, preferring in order: a sanitized
       name match, a slug match, an alternative-name match, the first result.

Every query uses IGDB's Apicalypse body syntax, e.g.:
    fields game; search "Some Game"; limit 10;
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from seedtools.config import Config
from seedtools.services.exceptions import MetadataLookupFailure
from seedtools.utils.release_naming import sanitize_game_title

logger = logging.getLogger(__name__)


IGDB_API_BASE = "https://api.igdb.com/v4"
IGDB_FALLBACK_ID = 14591
IGDB_SCREENSHOT_URL = "https://images.igdb.com/igdb/image/upload/t_screenshot_big/{image_id}.jpg"


class IGDBClient:
    """
    IGDB v4 API client (Twitch client id + app access token).

    Args:
        client_id: Twitch application client id
        bearer_token: App access token
        session: Optional requests.Session (tests inject a mock)
    """

    def __init__(
        self,
        client_id: str,
        bearer_token: str,
        session: Optional[requests.Session] = None,
        timeout: int = Config.TMDB_API_TIMEOUT,
    ):
        self.client_id = client_id
        self.bearer_token = bearer_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _query(self, endpoint: str, body: str) -> List[Dict[str, Any]]:
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {self.bearer_token}",
            "Accept": "application/json",
        }
        logger.debug(f"IGDB {endpoint}: {body}")

        try:
            response = self.session.post(f"{IGDB_API_BASE}/{endpoint}", data=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise MetadataLookupFailure(f"IGDB {endpoint} request failed: {e}", provider="igdb") from e

        if isinstance(data, dict):
            return [data]
        return data if isinstance(data, list) else []

    def lookup_id(self, game_title: str) -> int:
        """
        Best IGDB id for a sanitized title, IGDB_FALLBACK_ID when nothing matches.

        Raises:
            MetadataLookupFailure: On transport or parse errors
        """
        title = game_title.strip()
        while title:
            rows = self._query("search", f'fields game; search "{title}"; limit 10;')
            game_ids = [row["game"] for row in rows if isinstance(row.get("game"), int)]
            if game_ids:
                return self._best_match(title, game_ids)

            if " " not in title:
                break
            title = title[:title.rindex(" ")].strip()
            logger.debug(f"No IGDB results, retrying with '{title}'")

        logger.info(f"No IGDB match for '{game_title}', using fallback id {IGDB_FALLBACK_ID}")
        return IGDB_FALLBACK_ID

    def _best_match(self, title: str, game_ids: List[int]) -> int:
        ids = ",".join(str(i) for i in game_ids)
        games = self._query(
            "games",
            f"fields id, name, slug, alternative_names.name, first_release_date; where id = ({ids}); limit 10;",
        )
        query = sanitize_game_title(title).lower()

        for game in games:
            name = game.get("name") or ""
            slug = game.get("slug") or ""
            alt_names = [alt.get("name", "") for alt in game.get("alternative_names") or [] if isinstance(alt, dict)]

            if sanitize_game_title(name).lower() == query:
                return game["id"]
            if slug.replace("-", " ").lower() == query.replace("-", " "):
                return game["id"]
            if any(sanitize_game_title(alt).lower() == query for alt in alt_names):
                return game["id"]

        if games and games[0].get("id"):
            return games[0]["id"]
        return game_ids[0]

    def screenshot_urls(self, igdb_id: int) -> List[str]:
        """
        Full-size screenshot URLs for a game, possibly empty.

        Raises:
            MetadataLookupFailure: On transport or parse errors
        """
        games = self._query("games", f"fields screenshots; where id = {igdb_id}; limit 1;")
        screenshot_ids = [s for s in (games[0].get("screenshots") or [])] if games else []
        if not screenshot_ids:
            return []

        ids = ",".join(str(i) for i in screenshot_ids)
        rows = self._query("screenshots", f"fields id,image_id; where id = ({ids});")
        return [IGDB_SCREENSHOT_URL.format(image_id=row["image_id"]) for row in rows if row.get("image_id")]

    def download(self, url: str, destination: str) -> str:
        """Fetch one image to destination."""
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise MetadataLookupFailure(f"IGDB image download failed: {e}", provider="igdb") from e

        with open(destination, "wb") as f:
            f.write(response.content)
        return destination
