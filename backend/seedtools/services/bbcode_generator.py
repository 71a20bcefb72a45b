"""
BBCode Generator Service for seed-tools

This module builds the upload description shown on the tracker torrent page.

Example output (video):
    [center][table]
    [tr][td][url=https://cdn/x_1.jpg][img]https://cdn/x_1_thumb.jpg[/img][/url][/td][td]...[/td][/tr]
    [tr][td]...[/td][td]...[/td][/tr]
    [/table][/center]

    [b][spoiler=Sample: x.sample.mkv]https://cdn/x.sample.mkv[/spoiler][/b]

    [center][b][url=https://www.youtube.com/watch?v=id][Trailer on YouTube][/url][/b][/center]

    <custom description>

    <footer>

Tables always close every row, whether the image count is odd or even.
"""

import logging
import os
from typing import List, Optional, Sequence

from seedtools.adapters.image_host_adapter import HostedImage
from seedtools.services.music_analyzer import MusicAnalysis

logger = logging.getLogger(__name__)


IMAGES_PER_ROW = 2

FOOTER = (
    "[b][size=12][color=#757575]Created with mkbrr, ffmpeg, and mediainfo. "
    "Posted to this fine tracker with seed-tools.[/color][/size][/b]\n\n"
    "[url=https://seedpool.org][img]https://cdn.seedpool.org/sp.png[/img][/url]  "
    "[url=https://github.com/autobrr][img]https://cdn.seedpool.org/autobrr.png[/img][/url]"
)

CUSTOM_UPLOAD_DESCRIPTION = "Custom upload"


def image_table(images: Sequence[HostedImage]) -> str:
    """
    Thumbnail-links-to-full table, IMAGES_PER_ROW per row.

    Returns an empty string when there are no images.
    """
    if not images:
        return ""

    rows = []
    for start in range(0, len(images), IMAGES_PER_ROW):
        cells = "".join(
            f"[td][url={image.url}][img]{image.thumb_url}[/img][/url][/td]"
            for image in images[start:start + IMAGES_PER_ROW]
        )
        rows.append(f"[tr]{cells}[/tr]")

    return "[center][table]\n" + "\n".join(rows) + "\n[/table][/center]"


def sample_spoiler(sample_url: str) -> str:
    return f"[b][spoiler=Sample: {os.path.basename(sample_url)}]{sample_url}[/spoiler][/b]"


def trailer_link(trailer_url: str) -> str:
    return f"[center][b][url={trailer_url}][Trailer on YouTube][/url][/b][/center]"


def track_table(analysis: MusicAnalysis) -> str:
    """Numbered track list with duration and quality."""
    if not analysis.tracks:
        return ""

    lines = ["[table]", "[tr][td][b]#[/b][/td][td][b]Title[/b][/td][td][b]Artist[/b][/td][td][b]Length[/b][/td][td][b]Quality[/b][/td][/tr]"]
    for index, track in enumerate(analysis.tracks, 1):
        number = track.track_number or index
        lines.append(
            f"[tr][td]{number:02d}[/td][td]{track.title or track.file_name}[/td][td]{track.artist}[/td]"
            f"[td]{track.duration_formatted}[/td][td]{track.quality}[/td][/tr]"
        )
    lines.append("[/table]")
    return "\n".join(lines)


def compose(sections: List[Optional[str]]) -> str:
    """Join the non-empty sections with blank lines."""
    return "\n\n".join(s.strip() for s in sections if s and s.strip())


def build_video_description(
    screenshots: Sequence[HostedImage],
    sample_url: Optional[str] = None,
    trailer_url: Optional[str] = None,
    custom_description: str = "",
) -> str:
    return compose([
        image_table(screenshots),
        sample_spoiler(sample_url) if sample_url else None,
        trailer_link(trailer_url) if trailer_url else None,
        custom_description,
        FOOTER,
    ])


def build_music_description(
    analysis: MusicAnalysis,
    cover: Optional[HostedImage] = None,
    custom_description: str = "",
) -> str:
    header = None
    if analysis.artist or analysis.album:
        header = f"[center][size=14][b]{analysis.artist} - {analysis.album}[/b][/size][/center]"
    cover_block = f"[center][img]{cover.url}[/img][/center]" if cover else None

    return compose([
        cover_block,
        header,
        track_table(analysis),
        custom_description,
        FOOTER,
    ])


def build_book_description(
    pages: Sequence[HostedImage],
    title: str,
    author: str = "",
    year: str = "",
    work_url: Optional[str] = None,
    custom_description: str = "",
) -> str:
    details = [f"[b]Title:[/b] {title}"]
    if author:
        details.append(f"[b]Author:[/b] {author}")
    if year:
        details.append(f"[b]First published:[/b] {year}")
    if work_url:
        details.append(f"[url={work_url}]Open Library[/url]")

    return compose([
        image_table(pages),
        "\n".join(details),
        custom_description,
        FOOTER,
    ])


def build_generic_description(base_name: str, custom_description: str = "") -> str:
    """Fallback when nothing could be extracted from the release."""
    return compose([f"[b]{base_name}[/b]", custom_description, FOOTER])


def build_game_description(base_name: str, screenshots: Sequence[HostedImage], custom_description: str = "") -> str:
    """Image table of IGDB screenshots; just the release name when there are none."""
    if not screenshots:
        return base_name
    return compose([image_table(screenshots), custom_description, FOOTER])
