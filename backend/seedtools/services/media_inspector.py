"""
Media report generation.

Produces the plain-text MediaInfo report trackers show on the torrent page. The
"Complete name" line is rewritten to the bare file name so local directory layouts
never leak.
"""

import logging
import os
import re
from abc import ABC, abstractmethod

from pymediainfo import MediaInfo

from seedtools.services.exceptions import MediaInspectionError

logger = logging.getLogger(__name__)

_COMPLETE_NAME_RE = re.compile(r"^(Complete name\s*:\s*).*$", re.MULTILINE)


def sanitize_complete_name(report: str, file_path: str) -> str:
    """Replace the path on the first 'Complete name' line with the file's base name."""
    file_name = os.path.basename(file_path)
    return _COMPLETE_NAME_RE.sub(lambda m: m.group(1) + file_name, report, count=1)


class MediaInspector(ABC):
    @abstractmethod
    def inspect(self, file_path: str) -> str:
        """Text report for file_path, or raise MediaInspectionError."""


class PyMediaInfoInspector(MediaInspector):
    """MediaInfo report via the libmediainfo bindings."""

    def inspect(self, file_path: str) -> str:
        if not os.path.exists(file_path):
            raise MediaInspectionError(f"File not found: {file_path}", tool="mediainfo")

        try:
            report = MediaInfo.parse(file_path, output="")
        except (OSError, RuntimeError) as e:
            raise MediaInspectionError(f"MediaInfo failed for {file_path}: {e}", tool="mediainfo") from e

        if not isinstance(report, str) or not report.strip():
            raise MediaInspectionError(f"MediaInfo returned no report for {file_path}", tool="mediainfo")

        logger.debug(f"MediaInfo report for {os.path.basename(file_path)}: {len(report)} chars")
        return sanitize_complete_name(report, file_path)
