"""
Music release analysis.

Reads per-track tags with mutagen, decides the release format (flac when any FLAC
track is present, otherwise mp3), and prepares a cover image no larger than 500px
with Pillow, taken from cover/folder/front images next to the tracks or from the
first embedded picture.
"""

import io
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import mutagen
from mutagen.flac import FLAC
from mutagen.id3 import ID3, ID3NoHeaderError
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


AUDIO_EXTENSIONS = (".mp3", ".flac", ".m4a", ".ogg", ".opus", ".wav", ".aac", ".alac")
COVER_NAMES = ("cover", "folder", "front")
COVER_EXTENSIONS = (".jpg", ".jpeg", ".png")
COVER_MAX_SIZE = 500


@dataclass
class TrackInfo:
    file_name: str
    track_number: Optional[int] = None
    title: str = ""
    artist: str = ""
    album: str = ""
    duration: float = 0.0
    bitrate: int = 0
    codec: str = ""

    @property
    def duration_formatted(self) -> str:
        minutes, seconds = divmod(int(round(self.duration)), 60)
        return f"{minutes}:{seconds:02d}"

    @property
    def quality(self) -> str:
        if self.codec == "FLAC":
            return "FLAC"
        return f"{self.codec} {self.bitrate // 1000} kbps" if self.bitrate else self.codec


@dataclass
class MusicAnalysis:
    tracks: List[TrackInfo] = field(default_factory=list)
    music_format: str = "mp3"
    cover_path: Optional[str] = None

    @property
    def album(self) -> str:
        return next((t.album for t in self.tracks if t.album), "")

    @property
    def artist(self) -> str:
        return next((t.artist for t in self.tracks if t.artist), "")


def audio_files(path: Path) -> List[Path]:
    if path.is_file():
        return [path] if path.suffix.lower() in AUDIO_EXTENSIONS else []
    return sorted(p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in AUDIO_EXTENSIONS)


def music_format_for(files: List[Path]) -> str:
    """'flac' if any track is FLAC, else 'mp3'."""
    return "flac" if any(f.suffix.lower() == ".flac" for f in files) else "mp3"


def _first_tag(tags, key: str) -> str:
    if not tags or key not in tags:
        return ""
    value = tags[key]
    if isinstance(value, list):
        return str(value[0]) if value else ""
    return str(value)


def _track_number(raw: str) -> Optional[int]:
    number = raw.split("/")[0].strip()
    return int(number) if number.isdigit() else None


def read_track(file_path: Path) -> TrackInfo:
    """Tags and stream info for one file; missing tags stay empty."""
    track = TrackInfo(file_name=file_path.name, codec=file_path.suffix.lstrip(".").upper())

    try:
        audio = mutagen.File(file_path, easy=True)
    except mutagen.MutagenError as e:
        logger.warning(f"Could not read tags from {file_path.name}: {e}")
        return track

    if audio is None:
        return track

    tags = audio.tags
    track.title = _first_tag(tags, "title") or file_path.stem
    track.artist = _first_tag(tags, "artist") or _first_tag(tags, "albumartist")
    track.album = _first_tag(tags, "album")
    track.track_number = _track_number(_first_tag(tags, "tracknumber"))

    info = getattr(audio, "info", None)
    if info is not None:
        track.duration = float(getattr(info, "length", 0.0) or 0.0)
        track.bitrate = int(getattr(info, "bitrate", 0) or 0)
    return track


def find_cover_file(directory: Path) -> Optional[Path]:
    """cover|folder|front.(jpg|jpeg|png), case-insensitive."""
    if not directory.is_dir():
        return None
    for candidate in sorted(directory.iterdir()):
        if candidate.is_file() and candidate.stem.lower() in COVER_NAMES and candidate.suffix.lower() in COVER_EXTENSIONS:
            return candidate
    return None


def extract_embedded_cover(file_path: Path) -> Optional[bytes]:
    """First front cover (or any picture) embedded in a FLAC or MP3 file."""
    suffix = file_path.suffix.lower()
    try:
        if suffix == ".flac":
            pictures = FLAC(file_path).pictures
            if pictures:
                front = [p for p in pictures if p.type == 3]
                return (front[0] if front else pictures[0]).data
        elif suffix == ".mp3":
            id3 = ID3(file_path)
            for apic in id3.getall("APIC"):
                return apic.data
    except (mutagen.MutagenError, ID3NoHeaderError) as e:
        logger.debug(f"No embedded artwork in {file_path.name}: {e}")
    return None


def resize_cover(source: bytes, output_path: str, max_size: int = COVER_MAX_SIZE) -> str:
    """Save source image bytes as an RGB JPEG no larger than max_size on either side."""
    with Image.open(io.BytesIO(source)) as img:
        if img.mode != "RGB":
            img = img.convert("RGB")
        img.thumbnail((max_size, max_size), Image.LANCZOS)
        img.save(output_path, "JPEG", quality=90)
    return output_path


class MusicAnalyzer:
    """Builds a MusicAnalysis for a music release."""

    def __init__(self, work_dir: str):
        self.work_dir = work_dir

    def analyze(self, path: Path, release_name: str) -> MusicAnalysis:
        files = audio_files(path)
        tracks = [read_track(f) for f in files]
        tracks.sort(key=lambda t: (t.track_number is None, t.track_number or 0, t.file_name))

        analysis = MusicAnalysis(tracks=tracks, music_format=music_format_for(files))
        analysis.cover_path = self.prepare_cover(path, files, release_name)
        logger.info(
            f"Music analysis: {len(tracks)} tracks, format={analysis.music_format}, "
            f"cover={'yes' if analysis.cover_path else 'no'}"
        )
        return analysis

    def prepare_cover(self, path: Path, files: List[Path], release_name: str) -> Optional[str]:
        directory = path if path.is_dir() else path.parent
        source: Optional[Tuple[str, bytes]] = None

        cover_file = find_cover_file(directory)
        if cover_file is not None:
            source = (cover_file.name, cover_file.read_bytes())
        else:
            for f in files:
                data = extract_embedded_cover(f)
                if data:
                    source = (f.name, data)
                    break

        if source is None:
            return None

        os.makedirs(self.work_dir, exist_ok=True)
        output_path = os.path.join(self.work_dir, f"{release_name}_cover.jpg")
        try:
            return resize_cover(source[1], output_path)
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f"Could not process cover art from {source[0]}: {e}")
            return None
