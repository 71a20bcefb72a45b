"""
YouTube trailer lookup (optional description enrichment).
"""

import logging
from typing import Optional

import requests

from seedtools.config import Config

logger = logging.getLogger(__name__)


YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"


class YouTubeClient:
    def __init__(self, api_key: str, session: Optional[requests.Session] = None, timeout: int = Config.TMDB_API_TIMEOUT):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def find_trailer(self, title: str, year: Optional[str] = None) -> Optional[str]:
        """
        Watch URL of the first video matching "<title> <year> trailer".

        Returns None when nothing is found. Transport or HTTP failures raise
        requests.exceptions.RequestException.
        """
        query = f"{title} {year} trailer" if year else f"{title} trailer"
        params = {
            "part": "snippet",
            "q": query,
            "type": "video",
            "key": self.api_key,
            "maxResults": 1,
        }

        response = self.session.get(YOUTUBE_SEARCH_URL, params=params, timeout=self.timeout)
        response.raise_for_status()

        items = response.json().get("items") or []
        video_id = (items[0].get("id") or {}).get("videoId") if items else None
        if not video_id:
            logger.info(f"No trailer found on YouTube for '{query}'")
            return None

        url = f"https://www.youtube.com/watch?v={video_id}"
        logger.info(f"Found YouTube trailer: {url}")
        return url
