"""
Artifact Builder

Builds everything a tracker upload needs for one (input, tracker) run:

    - the .torrent, created once over the whole input
    - the media report (video and music)
    - screenshots, thumbnails and a sample clip for video
    - a cover for music, representative pages for books, IGDB shots for games
    - the BBCode description
    - the release's own .nfo when one ships with it

Fatal failures: no eligible media in a video release (NoEligibleMedia) and torrent
creation (TorrentCreationError). Everything else degrades: a missing media report,
sample, screenshot or cover just leaves that part out of the description.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from seedtools.adapters.cdn_adapter import CdnAdapter
from seedtools.adapters.image_host_adapter import HostedImage, ImageHostAdapter
from seedtools.adapters.imgbb_adapter import ImgBBAdapter
from seedtools.schemas.config import RunContext, TrackerSettings
from seedtools.services import bbcode_generator
from seedtools.services.book_extractor import PageExtractor
from seedtools.services.cdn_uploader import FileUploader, ScpUploader
from seedtools.services.classifier import VIDEO_EXTENSIONS, ContentType, ReleaseInfo
from seedtools.services.exceptions import (
    ExternalToolError,
    MediaInspectionError,
    MetadataLookupFailure,
    NetworkRetryableError,
    NoEligibleMedia,
    ScreenshotError,
    UploadFileError,
)
from seedtools.services.igdb_client import IGDBClient
from seedtools.services.media_inspector import MediaInspector, PyMediaInfoInspector
from seedtools.services.metadata_resolver import ResolvedMetadata
from seedtools.services.music_analyzer import MusicAnalyzer, audio_files
from seedtools.services.screenshot_generator import FFmpegFrameExtractor, FrameExtractor, ScreenshotGenerator
from seedtools.services.torrent_generator import TorrentCreator, get_torrent_creator, tracker_torrent_dir
from seedtools.utils.process import run_tool
from seedtools.utils.release_naming import generate_release_name, url_safe_filename

logger = logging.getLogger(__name__)


EXCLUDED_MEDIA_RE = re.compile(r"sample|screens|screenshots|proof", re.IGNORECASE)
_FIRST_RAR_VOLUME_RE = re.compile(r"\.part0*1\.rar$", re.IGNORECASE)
_LATER_RAR_VOLUME_RE = re.compile(r"\.part\d+\.rar$", re.IGNORECASE)

_HOST_ERRORS = (UploadFileError, NetworkRetryableError)


@dataclass
class UploadArtifact:
    """Everything handed to a tracker adapter for one upload."""
    torrent_path: str
    description: str
    mediainfo: str = ""
    screenshot_urls: List[str] = field(default_factory=list)
    thumbnail_urls: List[str] = field(default_factory=list)
    sample_url: Optional[str] = None
    nfo_path: Optional[str] = None
    music_format: Optional[str] = None


# ============================================================================
# Input helpers
# ============================================================================

def find_nfo(path: Path) -> Optional[Path]:
    """The sibling <stem>.nfo of a file, or the first .nfo under a directory."""
    if path.is_file():
        sibling = path.with_suffix(".nfo")
        return sibling if sibling.is_file() else None
    nfos = sorted(p for p in path.rglob("*") if p.is_file() and p.suffix.lower() == ".nfo")
    return nfos[0] if nfos else None


def eligible_media(path: Path, exclude_junk: bool = False) -> List[Path]:
    """Video files in the input, sorted; sample/proof/screens files skipped when exclude_junk."""
    if path.is_file():
        files = [path]
    else:
        files = sorted(p for p in path.rglob("*") if p.is_file())

    media = [f for f in files if f.suffix.lower().lstrip(".") in VIDEO_EXTENSIONS]
    if exclude_junk:
        media = [f for f in media if not EXCLUDED_MEDIA_RE.search(f.name)]
    return media


def first_rar_volume(directory: Path) -> Optional[Path]:
    """The archive unrar should start from: .part1.rar / .part01.rar, else the plain .rar."""
    rars = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".rar")
    for rar in rars:
        if _FIRST_RAR_VOLUME_RE.search(rar.name):
            return rar
    plain = [r for r in rars if not _LATER_RAR_VOLUME_RE.search(r.name)]
    return (plain or rars or [None])[0]


def extract_scene_archive(directory: Path, unrar: str = "unrar") -> bool:
    """
    Unpack a RAR-only scene directory in place.

    Returns:
        True when an archive was extracted
    """
    archive = first_rar_volume(directory)
    if archive is None:
        return False
    logger.info(f"Extracting scene archive {archive.name}")
    run_tool([unrar, "x", "-o+", str(archive), f"{directory}/"], ExternalToolError, f"unrar of {archive.name} failed")
    return True


def get_image_host(
    context: RunContext,
    tracker: TrackerSettings,
    uploader: Optional[FileUploader] = None,
) -> Optional[ImageHostAdapter]:
    """ImgBB when a key is configured, the tracker's scp CDN otherwise, or None."""
    if context.general.imgbb_api_key:
        return ImgBBAdapter(context.general.imgbb_api_key)
    if tracker.has_cdn:
        return CdnAdapter(tracker.cdn_remote_path, tracker.cdn_image_path, uploader or ScpUploader(context.paths.scp))
    logger.warning(f"No image host configured for {tracker.slug}; descriptions will carry no images")
    return None


# ============================================================================
# Builder
# ============================================================================

class ArtifactBuilder:
    """
    Builds UploadArtifacts for one tracker.

    Collaborators default to the real tools named in the RunContext paths; tests pass
    fakes.
    """

    def __init__(
        self,
        context: RunContext,
        tracker: TrackerSettings,
        torrent_creator: Optional[TorrentCreator] = None,
        inspector: Optional[MediaInspector] = None,
        frame_extractor: Optional[FrameExtractor] = None,
        image_host: Optional[ImageHostAdapter] = None,
        page_extractor: Optional[PageExtractor] = None,
        igdb: Optional[IGDBClient] = None,
    ):
        self.context = context
        self.tracker = tracker
        self.paths = context.paths
        self.torrent_creator = torrent_creator or get_torrent_creator(context.paths)
        self.inspector = inspector or PyMediaInfoInspector()
        self.frame_extractor = frame_extractor or FFmpegFrameExtractor(context.paths.ffmpeg, context.paths.ffprobe)
        self.image_host = image_host if image_host is not None else get_image_host(context, tracker)
        self.page_extractor = page_extractor or PageExtractor(context.paths)
        self.igdb = igdb

    def build(self, input_path: Path, release: ReleaseInfo, metadata: ResolvedMetadata) -> UploadArtifact:
        """
        Artifact for the release's content family.

        Raises:
            NoEligibleMedia: A video release holds no usable video file
            TorrentCreationError: The torrent could not be created
        """
        content_type = release.content_type
        logger.info(f"Building {content_type.value} artifacts for {input_path.name}")

        if content_type.is_video:
            return self.build_video(input_path, metadata)
        if content_type is ContentType.MUSIC:
            return self.build_music(input_path)
        if content_type.is_paged:
            return self.build_paged(input_path, release, metadata)
        if content_type is ContentType.GAME:
            return self.build_game(input_path, release, metadata)
        return self.build_generic(input_path, release)

    # ------------------------------------------------------------------

    def create_torrent(self, input_path: Path) -> str:
        return self.torrent_creator.create(
            str(input_path),
            tracker_torrent_dir(self.paths.torrent_dir, self.tracker.slug),
            self.tracker.announce_url,
            self.tracker.source,
            self.tracker.exclude_junk,
        )

    def inspect(self, media_file: Path) -> str:
        try:
            return self.inspector.inspect(str(media_file))
        except MediaInspectionError as e:
            logger.warning(f"Media report unavailable for {media_file.name}: {e}")
            return ""

    def _upload_image(self, image_path: str) -> Optional[HostedImage]:
        if self.image_host is None:
            return None
        try:
            return self.image_host.upload_image(image_path)
        except _HOST_ERRORS as e:
            logger.error(f"Image upload failed for {os.path.basename(image_path)}: {e}")
            return None

    def _nfo(self, input_path: Path) -> Optional[str]:
        nfo = find_nfo(input_path)
        if nfo is not None:
            logger.info(f"Found NFO: {nfo.name}")
        return str(nfo) if nfo else None

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    def video_files(self, input_path: Path) -> List[Path]:
        """
        Eligible media, unpacking a RAR-only scene directory first.

        Raises:
            NoEligibleMedia: Nothing left after exclusion
        """
        media = eligible_media(input_path, self.tracker.exclude_junk)
        if not media and input_path.is_dir():
            try:
                extracted = extract_scene_archive(input_path, self.paths.unrar)
            except ExternalToolError as e:
                raise NoEligibleMedia(f"No video files in {input_path} and extraction failed: {e}") from e
            if extracted:
                media = eligible_media(input_path, self.tracker.exclude_junk)

        if not media:
            raise NoEligibleMedia(f"No eligible video files in {input_path}")
        logger.info(f"Found {len(media)} eligible video file(s); using {media[0].name}")
        return media

    def build_video(self, input_path: Path, metadata: ResolvedMetadata) -> UploadArtifact:
        media = self.video_files(input_path)
        nfo_path = self._nfo(input_path)
        torrent_path = self.create_torrent(input_path)
        mediainfo = self.inspect(media[0])

        release_name = generate_release_name(input_path.name)
        generator = ScreenshotGenerator(self.frame_extractor, self.paths.screenshots_dir)

        sample_url = self._sample(generator, media[0], release_name)
        images = self._screenshots(generator, media[0], release_name)

        description = bbcode_generator.build_video_description(
            images,
            sample_url=sample_url,
            trailer_url=metadata.trailer_url,
            custom_description=self.tracker.custom_description,
        )
        return UploadArtifact(
            torrent_path=torrent_path,
            description=description,
            mediainfo=mediainfo,
            screenshot_urls=[i.url for i in images],
            thumbnail_urls=[i.thumb_url for i in images],
            sample_url=sample_url,
            nfo_path=nfo_path,
        )

    def _sample(self, generator: ScreenshotGenerator, video: Path, release_name: str) -> Optional[str]:
        if self.image_host is None or not self.image_host.supports_files:
            return None
        try:
            sample_file = generator.make_sample(str(video), release_name)
            return self.image_host.upload_file(sample_file)
        except (ScreenshotError,) + _HOST_ERRORS as e:
            logger.warning(f"Sample clip skipped: {e}")
            return None

    def _screenshots(self, generator: ScreenshotGenerator, video: Path, release_name: str) -> List[HostedImage]:
        if self.image_host is None:
            return []
        try:
            pairs = generator.capture(str(video), release_name)
        except ScreenshotError as e:
            logger.warning(f"Screenshots skipped: {e}")
            return []

        images = []
        for shot, thumb in pairs:
            try:
                images.append(self.image_host.upload_screenshot(shot, thumb))
            except _HOST_ERRORS as e:
                logger.error(f"Screenshot upload failed for {os.path.basename(shot)}: {e}")
        return images

    # ------------------------------------------------------------------
    # Music
    # ------------------------------------------------------------------

    def build_music(self, input_path: Path) -> UploadArtifact:
        torrent_path = self.create_torrent(input_path)
        release_name = generate_release_name(input_path.name)

        with tempfile.TemporaryDirectory(prefix="seedtools-music-") as work_dir:
            analysis = MusicAnalyzer(work_dir).analyze(input_path, release_name)
            cover = self._upload_image(analysis.cover_path) if analysis.cover_path else None

        tracks = audio_files(input_path)
        mediainfo = self.inspect(tracks[0]) if tracks else ""

        description = bbcode_generator.build_music_description(analysis, cover, self.tracker.custom_description)
        return UploadArtifact(
            torrent_path=torrent_path,
            description=description,
            mediainfo=mediainfo,
            screenshot_urls=[cover.url] if cover else [],
            thumbnail_urls=[cover.thumb_url] if cover else [],
            nfo_path=self._nfo(input_path),
            music_format=analysis.music_format,
        )

    # ------------------------------------------------------------------
    # Books, comics, newspapers
    # ------------------------------------------------------------------

    def build_paged(self, input_path: Path, release: ReleaseInfo, metadata: ResolvedMetadata) -> UploadArtifact:
        torrent_path = self.create_torrent(input_path)

        images: List[HostedImage] = []
        with tempfile.TemporaryDirectory(prefix="seedtools-pages-") as work_dir:
            try:
                pages = self.page_extractor.extract(input_path, Path(work_dir))
            except ScreenshotError as e:
                logger.warning(f"Page extraction failed: {e}")
                pages = []
            for page in pages:
                hosted = self._upload_image(str(page))
                if hosted:
                    images.append(hosted)

        title, author, year, work_url = self._book_details(release, metadata)
        description = bbcode_generator.build_book_description(
            images, title, author, year, work_url, self.tracker.custom_description,
        )
        return UploadArtifact(
            torrent_path=torrent_path,
            description=description,
            screenshot_urls=[i.url for i in images],
            thumbnail_urls=[i.thumb_url for i in images],
            nfo_path=self._nfo(input_path),
        )

    @staticmethod
    def _book_details(release: ReleaseInfo, metadata: ResolvedMetadata) -> Tuple[str, str, str, Optional[str]]:
        book, match = metadata.book, metadata.book_match
        title = book.title or release.title
        author = book.author or (match.author_name if match else "") or ""
        year = book.year or release.year or ""
        if match is not None and match.first_publish_year:
            year = str(match.first_publish_year)
        return title, author, year, match.work_url if match else None

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def build_game(self, input_path: Path, release: ReleaseInfo, metadata: ResolvedMetadata) -> UploadArtifact:
        torrent_path = self.create_torrent(input_path)

        images: List[HostedImage] = []
        if metadata.game_screenshot_urls:
            igdb = self.igdb or IGDBClient(
                self.context.general.igdb_client_id, self.context.general.igdb_bearer_token,
            )
            stem = url_safe_filename(release.base_name)
            with tempfile.TemporaryDirectory(prefix="seedtools-igdb-") as work_dir:
                for n, url in enumerate(metadata.game_screenshot_urls, 1):
                    destination = os.path.join(work_dir, f"{stem}_igdb_{n}.jpg")
                    try:
                        igdb.download(url, destination)
                    except MetadataLookupFailure as e:
                        logger.warning(f"Skipping IGDB screenshot {n}: {e}")
                        continue
                    hosted = self._upload_image(destination)
                    if hosted:
                        images.append(hosted)

        description = bbcode_generator.build_game_description(
            release.base_name, images, self.tracker.custom_description,
        )
        return UploadArtifact(
            torrent_path=torrent_path,
            description=description,
            screenshot_urls=[i.url for i in images],
            thumbnail_urls=[i.thumb_url for i in images],
            nfo_path=self._nfo(input_path),
        )

    # ------------------------------------------------------------------
    # Unknown and custom
    # ------------------------------------------------------------------

    def build_generic(self, input_path: Path, release: ReleaseInfo) -> UploadArtifact:
        return UploadArtifact(
            torrent_path=self.create_torrent(input_path),
            description=bbcode_generator.build_generic_description(release.base_name, self.tracker.custom_description),
            nfo_path=self._nfo(input_path),
        )

    def build_custom(self, input_path: Path) -> UploadArtifact:
        """Torrent plus the fixed custom-upload description; no media work."""
        return UploadArtifact(
            torrent_path=self.create_torrent(input_path),
            description=bbcode_generator.CUSTOM_UPLOAD_DESCRIPTION,
            nfo_path=self._nfo(input_path),
        )
