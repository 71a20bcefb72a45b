"""
Release Classifier

Turns a filesystem path (file or directory) into an immutable ReleaseInfo.

Classification runs in two passes:
    1. Content families (music, comic, newspaper, ebook, game) are detected from the
       extensions of the files under the path. The first family with a matching file
       wins and video heuristics are never consulted.
    2. Video rules are evaluated top-to-bottom against the base name, first match wins:
         season_episode  SxxEyy                        -> video-tv
         boxset_keyword  boxset|complete|collection    -> video-boxset (episode 0)
         season_only     Sxx                           -> video-tv (episode unset)
         year            19xx / 20xx                   -> video-movie
       Nothing matched -> unknown.

Both rule lists are plain data, so a new family or pattern is one more entry.

Usage:
    release = classify("/downloads/Show.Name.S01E02.1080p.WEB.mkv")
    release.content_type   # ContentType.TV
    release.resolution_id  # 3
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, FrozenSet, List, Optional, Pattern, Sequence, Tuple, Union

from seedtools.services.exceptions import ClassificationAmbiguous
from seedtools.utils.release_naming import humanize

logger = logging.getLogger(__name__)


class ContentType(str, Enum):
    """What a release is."""
    MOVIE = "video-movie"
    TV = "video-tv"
    BOXSET = "video-boxset"
    MUSIC = "music"
    EBOOK = "ebook"
    COMIC = "comic"
    NEWSPAPER = "newspaper"
    GAME = "game"
    UNKNOWN = "unknown"

    @property
    def is_video(self) -> bool:
        return self in (ContentType.MOVIE, ContentType.TV, ContentType.BOXSET)

    @property
    def is_paged(self) -> bool:
        return self in (ContentType.EBOOK, ContentType.COMIC, ContentType.NEWSPAPER)


# Resolution token -> tracker resolution id. 8640p maps to the unknown id.
RESOLUTION_IDS = {
    "8640p": 10,
    "4320p": 1,
    "2160p": 2,
    "1440p": 3,
    "1080p": 3,
    "1080i": 4,
    "720p": 5,
    "576p": 6,
    "576i": 7,
    "480p": 8,
    "480i": 9,
}
UNKNOWN_RESOLUTION_ID = 10

RESOLUTION_RE = re.compile(r"(8640p|4320p|2160p|1440p|1080p|1080i|720p|576p|576i|480p|480i)", re.IGNORECASE)

VIDEO_EXTENSIONS = frozenset({"mkv", "mp4", "ts", "avi", "mov", "flv", "wmv"})

_B = r"(?<![A-Za-z0-9])"
SEASON_EPISODE_RE = re.compile(_B + r"S(\d{2})E(\d{2,3})", re.IGNORECASE)
SEASON_RE = re.compile(_B + r"S(\d{2})(?![0-9])", re.IGNORECASE)
BOXSET_RE = re.compile(_B + r"(boxset|complete|collection)(?![A-Za-z0-9])", re.IGNORECASE)
YEAR_TOKEN_RE = re.compile(r"(?<![A-Za-z0-9])((?:19|20)\d{2})(?![A-Za-z0-9])")
DATED_NAME_RE = re.compile(r"(?<![0-9])(19|20)\d{2}[-._](0[1-9]|1[0-2])[-._](0[1-9]|[12]\d|3[01])(?![0-9])")


def resolution_id_for(tag: Optional[str]) -> int:
    """Tracker resolution id for a token such as '1080p'; 10 when unknown or absent."""
    return RESOLUTION_IDS.get((tag or "").lower(), UNKNOWN_RESOLUTION_ID)


def extract_resolution_tag(name: str) -> Optional[str]:
    match = RESOLUTION_RE.search(name)
    return match.group(1).lower() if match else None


@dataclass(frozen=True)
class ReleaseInfo:
    """Structured view of one release, consumed by every later pipeline stage."""
    content_type: ContentType
    title: str
    base_name: str
    year: Optional[str] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    resolution_tag: Optional[str] = None

    @property
    def resolution_id(self) -> int:
        return resolution_id_for(self.resolution_tag)

    @property
    def has_episode(self) -> bool:
        """False for season packs: no episode number, or the boxset marker 0."""
        return bool(self.episode)

    @property
    def season_episode_tag(self) -> Optional[str]:
        if self.season is None or not self.has_episode:
            return None
        return f"S{self.season:02d}E{self.episode:02d}"


# ============================================================================
# Content family rules
# ============================================================================

@dataclass(frozen=True)
class FamilyRule:
    """A content family recognised by file extension, optionally gated by a name pattern."""
    content_type: ContentType
    extensions: FrozenSet[str]
    name_pattern: Optional[Pattern] = None

    def matches(self, file_path: Path) -> bool:
        if file_path.suffix.lower().lstrip(".") not in self.extensions:
            return False
        if self.name_pattern is not None:
            return bool(self.name_pattern.search(file_path.name))
        return True


FAMILY_RULES: Tuple[FamilyRule, ...] = (
    FamilyRule(ContentType.MUSIC, frozenset({"mp3", "flac", "m4a", "ogg", "opus", "wav", "aac", "alac"})),
    FamilyRule(ContentType.COMIC, frozenset({"cbz", "cbr", "cb7"})),
    FamilyRule(ContentType.NEWSPAPER, frozenset({"pdf"}), DATED_NAME_RE),
    FamilyRule(ContentType.EBOOK, frozenset({"epub", "mobi", "azw3", "pdf"})),
    FamilyRule(ContentType.GAME, frozenset({"nsp", "xci", "nsz", "rvz", "wbfs", "pkg"})),
)


# ============================================================================
# Video rules
# ============================================================================

# (season, episode, index where the title ends)
RuleOutcome = Tuple[Optional[int], Optional[int], int]


@dataclass(frozen=True)
class VideoRule:
    name: str
    pattern: Pattern
    content_type: ContentType
    extract: Callable[[re.Match, str], RuleOutcome]

    def apply(self, name: str) -> Optional[RuleOutcome]:
        matches = list(self.pattern.finditer(name))
        if not matches:
            return None
        # Year rule anchors on the last year token so titles like "2001" or "2049" survive.
        match = matches[-1] if self.content_type is ContentType.MOVIE else matches[0]
        return self.extract(match, name)


def _season_episode(match: re.Match, name: str) -> RuleOutcome:
    return int(match.group(1)), int(match.group(2)), match.start()


def _boxset(match: re.Match, name: str) -> RuleOutcome:
    season_match = SEASON_RE.search(name)
    if season_match:
        return int(season_match.group(1)), 0, min(match.start(), season_match.start())
    return 1, 0, match.start()


def _season_only(match: re.Match, name: str) -> RuleOutcome:
    return int(match.group(1)), None, match.start()


def _year(match: re.Match, name: str) -> RuleOutcome:
    return None, None, match.start()


VIDEO_RULES: Tuple[VideoRule, ...] = (
    VideoRule("season_episode", SEASON_EPISODE_RE, ContentType.TV, _season_episode),
    VideoRule("boxset_keyword", BOXSET_RE, ContentType.BOXSET, _boxset),
    VideoRule("season_only", SEASON_RE, ContentType.TV, _season_only),
    VideoRule("year", YEAR_TOKEN_RE, ContentType.MOVIE, _year),
)


# ============================================================================
# Classification
# ============================================================================

_ALL_KNOWN_EXTENSIONS = VIDEO_EXTENSIONS.union(*(rule.extensions for rule in FAMILY_RULES), {"nfo"})


def _strip_known_extension(name: str) -> str:
    stem, dot, ext = name.rpartition(".")
    if dot and stem and ext.lower() in _ALL_KNOWN_EXTENSIONS:
        return stem
    return name


def candidate_files(path: Path) -> List[Path]:
    """Files a family check looks at: everything under a directory, or the path itself."""
    if path.is_dir():
        return sorted(p for p in path.rglob("*") if p.is_file())
    return [path]


def detect_family(path: Path, rules: Sequence[FamilyRule] = FAMILY_RULES) -> Optional[ContentType]:
    files = candidate_files(path)
    for rule in rules:
        if any(rule.matches(file_path) for file_path in files):
            return rule.content_type
    return None


def _last_year(name: str) -> Optional[str]:
    matches = YEAR_TOKEN_RE.findall(name)
    return matches[-1] if matches else None


def classify(
    path: Union[str, Path],
    family_rules: Sequence[FamilyRule] = FAMILY_RULES,
    video_rules: Sequence[VideoRule] = VIDEO_RULES,
) -> ReleaseInfo:
    """
    Classify a release path. Never raises; unmatched names become ContentType.UNKNOWN.

    Identical paths (and directory contents) always yield identical results.
    """
    path = Path(path)
    base_name = path.name
    name = _strip_known_extension(base_name)
    resolution_tag = extract_resolution_tag(base_name)
    year = _last_year(name)

    family = detect_family(path, family_rules)
    if family is not None:
        logger.debug(f"Detected {family.value} release from file extensions: {base_name}")
        return ReleaseInfo(
            content_type=family,
            title=humanize(name),
            base_name=base_name,
            year=year,
            resolution_tag=resolution_tag,
        )

    for rule in video_rules:
        outcome = rule.apply(name)
        if outcome is None:
            continue

        season, episode, cut = outcome
        title = humanize(name[:cut]) or humanize(name)
        logger.debug(
            f"Rule '{rule.name}' matched {base_name}: type={rule.content_type.value}, "
            f"title={title}, year={year}, season={season}, episode={episode}"
        )
        return ReleaseInfo(
            content_type=rule.content_type,
            title=title,
            base_name=base_name,
            year=year,
            season=season,
            episode=episode,
            resolution_tag=resolution_tag,
        )

    logger.warning(ClassificationAmbiguous(f"No classification rule matched '{base_name}', using 'unknown'"))
    return ReleaseInfo(
        content_type=ContentType.UNKNOWN,
        title=humanize(name),
        base_name=base_name,
        year=year,
        resolution_tag=resolution_tag,
    )
