"""
Metadata Resolver

Gathers canonical ids and description extras for a classified release.

    video    TMDB id (fatal on failure), IMDb/TVDB ids, YouTube trailer
    game     IGDB id and screenshot URLs
    ebook    embedded title/author, then an Open Library match
    other    nothing

Every lookup returns a LookupResult tagged with a Severity. Only a FATAL result
stops the run: the TMDB id for video, which later drives category selection. Anything
else degrades to defaults and the description simply gets less rich.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

import requests

from seedtools.schemas.config import GeneralSettings, PathSettings
from seedtools.services.book_extractor import BookMetadata, read_embedded_metadata
from seedtools.services.classifier import ContentType, ReleaseInfo
from seedtools.services.exceptions import MetadataLookupFailure, NetworkRetryableError
from seedtools.services.igdb_client import IGDB_FALLBACK_ID, IGDBClient
from seedtools.services.openlibrary_client import BookMatch, OpenLibraryClient
from seedtools.services.tmdb_client import TMDBClient
from seedtools.services.youtube_client import YouTubeClient
from seedtools.utils.release_naming import sanitize_game_title

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Severity(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FATAL = "fatal"


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    """Outcome of one external lookup."""
    value: Optional[T] = None
    severity: Severity = Severity.OK
    error: Optional[str] = None

    @property
    def is_fatal(self) -> bool:
        return self.severity is Severity.FATAL

    @classmethod
    def ok(cls, value: T) -> "LookupResult[T]":
        return cls(value=value)

    @classmethod
    def degraded(cls, value: Optional[T], error: str) -> "LookupResult[T]":
        return cls(value=value, severity=Severity.DEGRADED, error=error)

    @classmethod
    def fatal(cls, error: str) -> "LookupResult[T]":
        return cls(severity=Severity.FATAL, error=error)


@dataclass(frozen=True)
class ExternalIds:
    """Canonical ids attached to an upload. tmdb 0 means unknown."""
    tmdb: int = 0
    imdb: Optional[str] = None
    tvdb: Optional[int] = None
    igdb: Optional[int] = None
    openlibrary_work: Optional[str] = None
    openlibrary_author: Optional[str] = None

    def form_fields(self) -> Dict[str, str]:
        """Id fields as upload form values; anything unknown is sent as '0'."""
        return {
            "tmdb": str(self.tmdb or 0),
            "imdb": self.imdb or "0",
            "tvdb": str(self.tvdb or 0),
            "igdb": str(self.igdb or 0),
        }


@dataclass
class ResolvedMetadata:
    ids: ExternalIds = field(default_factory=ExternalIds)
    trailer_url: Optional[str] = None
    game_screenshot_urls: List[str] = field(default_factory=list)
    book: BookMetadata = field(default_factory=BookMetadata)
    book_match: Optional[BookMatch] = None
    degraded: List[str] = field(default_factory=list)


def tmdb_media_type(content_type: ContentType) -> str:
    """Boxsets are looked up as tv."""
    return "movie" if content_type is ContentType.MOVIE else "tv"


class MetadataResolver:
    """
    Runs the lookups a release's content type calls for.

    Clients are created from the RunContext settings unless injected.
    """

    def __init__(
        self,
        general: GeneralSettings,
        paths: PathSettings,
        tmdb: Optional[TMDBClient] = None,
        youtube: Optional[YouTubeClient] = None,
        igdb: Optional[IGDBClient] = None,
        openlibrary: Optional[OpenLibraryClient] = None,
    ):
        self.general = general
        self.paths = paths
        self.tmdb = tmdb or TMDBClient(general.tmdb_api_key)
        self.youtube = youtube or (YouTubeClient(general.youtube_api_key) if general.youtube_api_key else None)
        self.igdb = igdb or (
            IGDBClient(general.igdb_client_id, general.igdb_bearer_token) if general.igdb_configured else None
        )
        self.openlibrary = openlibrary or OpenLibraryClient()

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    def resolve_tmdb_id(self, release: ReleaseInfo) -> LookupResult[int]:
        try:
            return LookupResult.ok(self.tmdb.search_id(release.title, release.year, tmdb_media_type(release.content_type)))
        except (MetadataLookupFailure, NetworkRetryableError) as e:
            return LookupResult.fatal(str(e))

    def resolve_external_ids(self, tmdb_id: int, content_type: ContentType) -> LookupResult[Tuple[Optional[str], Optional[int]]]:
        try:
            return LookupResult.ok(self.tmdb.external_ids(tmdb_id, tmdb_media_type(content_type)))
        except (MetadataLookupFailure, NetworkRetryableError) as e:
            return LookupResult.degraded((None, None), str(e))

    def resolve_trailer(self, release: ReleaseInfo) -> LookupResult[str]:
        if self.youtube is None:
            return LookupResult.ok(None)
        try:
            return LookupResult.ok(self.youtube.find_trailer(release.title, release.year))
        except (requests.exceptions.RequestException, ValueError) as e:
            return LookupResult.degraded(None, f"YouTube lookup failed: {e}")

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def resolve_game(self, release: ReleaseInfo) -> LookupResult[Tuple[int, List[str]]]:
        if self.igdb is None:
            return LookupResult.degraded((IGDB_FALLBACK_ID, []), "IGDB credentials not configured")

        title = sanitize_game_title(release.base_name)
        try:
            igdb_id = self.igdb.lookup_id(title)
        except MetadataLookupFailure as e:
            return LookupResult.degraded((IGDB_FALLBACK_ID, []), str(e))

        if igdb_id == IGDB_FALLBACK_ID:
            return LookupResult.ok((igdb_id, []))

        try:
            urls = self.igdb.screenshot_urls(igdb_id)
        except MetadataLookupFailure as e:
            return LookupResult.degraded((igdb_id, []), str(e))
        return LookupResult.ok((igdb_id, urls))

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def resolve_book(self, input_path: Path) -> LookupResult[Tuple[BookMetadata, Optional[BookMatch]]]:
        book = read_embedded_metadata(input_path, self.paths)
        if not book.searchable:
            logger.info("No embedded title/author, skipping Open Library lookup")
            return LookupResult.ok((book, None))

        try:
            return LookupResult.ok((book, self.openlibrary.search(book.title, book.author)))
        except MetadataLookupFailure as e:
            return LookupResult.degraded((book, None), str(e))

    # ------------------------------------------------------------------

    def resolve(self, release: ReleaseInfo, input_path: Path) -> ResolvedMetadata:
        """
        All lookups for the release.

        Raises:
            MetadataLookupFailure: When the TMDB id of a video release cannot be resolved
        """
        resolved = ResolvedMetadata()

        def note(result: LookupResult, what: str) -> None:
            if result.severity is Severity.DEGRADED:
                logger.warning(f"{what} degraded: {result.error}")
                resolved.degraded.append(what)

        if release.content_type.is_video:
            tmdb_result = self.resolve_tmdb_id(release)
            if tmdb_result.is_fatal:
                raise MetadataLookupFailure(f"TMDB lookup failed for '{release.title}': {tmdb_result.error}")
            tmdb_id = tmdb_result.value or 0

            ids_result = self.resolve_external_ids(tmdb_id, release.content_type)
            note(ids_result, "external ids")
            imdb_id, tvdb_id = ids_result.value or (None, None)
            resolved.ids = ExternalIds(tmdb=tmdb_id, imdb=imdb_id, tvdb=tvdb_id)

            trailer_result = self.resolve_trailer(release)
            note(trailer_result, "trailer")
            resolved.trailer_url = trailer_result.value

        elif release.content_type is ContentType.GAME:
            game_result = self.resolve_game(release)
            note(game_result, "igdb")
            igdb_id, urls = game_result.value
            resolved.ids = ExternalIds(igdb=igdb_id)
            resolved.game_screenshot_urls = urls

        elif release.content_type is ContentType.EBOOK:
            book_result = self.resolve_book(input_path)
            note(book_result, "open library")
            resolved.book, resolved.book_match = book_result.value
            if resolved.book_match is not None:
                resolved.ids = ExternalIds(
                    openlibrary_work=resolved.book_match.work_key,
                    openlibrary_author=resolved.book_match.author_key,
                )

        logger.info(f"Resolved metadata for {release.base_name}: {resolved.ids}")
        return resolved
