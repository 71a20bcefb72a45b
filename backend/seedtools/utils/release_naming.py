"""
Release name helpers.

generate_release_name() reproduces the canonical release-name grammar trackers store
names in. Dedupe matching compares against those stored names, so the rewrite steps and
their order must not change.
"""

import re

MEDIA_EXTENSION_RE = re.compile(r"\.(mkv|mp4|m4b|avi|mov|flv|wmv|ts)$")
_INVALID_CHARS_RE = re.compile(r"[^A-Za-z0-9+\-]")
_DOT_RUN_RE = re.compile(r"\.\.+")
_DOT_DASH_RE = re.compile(r"-\.+|\.-+")
_TRAILING_DOT_RE = re.compile(r"\.$")

_GAME_EXTENSION_RE = re.compile(r"\.[a-z0-9]{2,4}$")
_GAME_VERSION_RE = re.compile(r"[ _.-]?v\d[\w.]*.*", re.IGNORECASE)
_GAME_GROUP_RE = re.compile(r"\[.*?\]$")
_GAME_TAGS_RE = re.compile(
    r"\b(REPACK|PROPER|MULTI\d+|FULL|NSW|Unlocker|Update|Pack|RELOADED|FLT|GOG|CODEX|"
    r"SKIDROW|PLAZA|CPY|Razor1911|FitGirl|ElAmigos|DODI|GoldBerg|DOGE|P2P|SteamRip|Switch|"
    r"XCI|NSP|PC|ISO|DARKSiDERS|Chronos|TiNYiSO|Unleashed|FIX)\b",
    re.IGNORECASE,
)
YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")


def generate_release_name(base_name: str) -> str:
    """
    Normalize a file or folder name to the tracker release-name grammar.

    Idempotent: normalizing an already-normalized name returns it unchanged.

    Example:
        >>> generate_release_name("Show Name (US) S01E02 1080p WEB.mkv")
        'Show.Name.US.S01E02.1080p.WEB'
    """
    name = MEDIA_EXTENSION_RE.sub("", base_name, count=1)
    name = _INVALID_CHARS_RE.sub(".", name)
    name = _DOT_RUN_RE.sub(".", name)
    # ".-." needs two passes to reach "-".
    collapsed = _DOT_DASH_RE.sub("-", name)
    while collapsed != name:
        name, collapsed = collapsed, _DOT_DASH_RE.sub("-", collapsed)
    name = _TRAILING_DOT_RE.sub("", name, count=1)
    return name.lstrip(".")


def sanitize_game_title(raw: str) -> str:
    """
    Reduce a scene game release name to a searchable title.

    Drops the extension, the "-GROUP" suffix, version tails ("v1.2.3..."), bracketed groups,
    the year and common scene/platform tags.
    """
    name = _GAME_EXTENSION_RE.sub("", raw, count=1)

    if "-" in name:
        name = name[:name.rindex("-")]

    name = _GAME_VERSION_RE.sub("", name, count=1)
    name = _GAME_GROUP_RE.sub("", name, count=1)
    name = re.sub(r"[._]+", " ", name)
    name = re.sub(r"\s+", " ", name)
    name = YEAR_RE.sub("", name, count=1)
    name = _GAME_TAGS_RE.sub("", name)
    name = re.sub(r"\s+", " ", name)
    return name.strip()


def url_safe_filename(name: str) -> str:
    """Whitespace to underscores, then drop anything outside [A-Za-z0-9_.-]."""
    name = re.sub(r"\s+", "_", name)
    return re.sub(r"[^A-Za-z0-9_\-.]", "", name)


def humanize(name: str) -> str:
    """'Some.Title_Here' -> 'Some Title Here'."""
    return re.sub(r"\s+", " ", name.replace(".", " ").replace("_", " ")).strip()
