"""Open Library lookup for eBook releases. No API key required."""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from seedtools.config import Config
from seedtools.services.exceptions import MetadataLookupFailure

logger = logging.getLogger(__name__)

OPENLIBRARY_BASE_URL = "https://openlibrary.org"
COVERS_BASE_URL = "https://covers.openlibrary.org"


@dataclass(frozen=True)
class BookMatch:
    work_key: str
    title: str
    author_key: Optional[str] = None
    author_name: Optional[str] = None
    first_publish_year: Optional[int] = None
    cover_id: Optional[int] = None

    @property
    def work_url(self) -> str:
        return f"{OPENLIBRARY_BASE_URL}/works/{self.work_key}"

    @property
    def cover_url(self) -> Optional[str]:
        return f"{COVERS_BASE_URL}/b/id/{self.cover_id}-L.jpg" if self.cover_id else None


class OpenLibraryClient:
    def __init__(self, session: Optional[requests.Session] = None, timeout: int = Config.TMDB_API_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def search(self, title: str, author: str) -> Optional[BookMatch]:
        """
        First search.json hit for title + author, or None.

        Raises:
            MetadataLookupFailure: On HTTP or parse errors
        """
        params = {
            "title": title,
            "author": author,
            "limit": 1,
            "fields": "key,title,author_key,author_name,first_publish_year,cover_i",
        }

        try:
            response = self.session.get(f"{OPENLIBRARY_BASE_URL}/search.json", params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise MetadataLookupFailure(f"Open Library search failed: {e}", provider="openlibrary") from e

        docs = data.get("docs") or []
        if not docs:
            logger.info(f"Open Library has no match for '{title}' by {author}")
            return None

        doc = docs[0]
        key = doc.get("key", "")
        work_key = key.split("/")[-1] if key else None
        if not work_key:
            return None

        author_keys = doc.get("author_key") or []
        author_names = doc.get("author_name") or []
        match = BookMatch(
            work_key=work_key,
            title=doc.get("title") or title,
            author_key=author_keys[0] if author_keys else None,
            author_name=author_names[0] if author_names else None,
            first_publish_year=doc.get("first_publish_year"),
            cover_id=doc.get("cover_i"),
        )
        logger.info(f"Open Library match: {match.title} ({match.work_key})")
        return match
