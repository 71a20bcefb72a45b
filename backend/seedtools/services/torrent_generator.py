"""
TorrentGenerator Service for seed-tools

Creates the .torrent for a release. Two interchangeable creators implement the
TorrentCreator interface:

    - MkbrrTorrentCreator: shells out to mkbrr (default, fastest on large packs)
    - TorfTorrentCreator: hashes in-process with torf

Both write <torrent_dir>/<release name>.torrent, mark it private, stamp the tracker's
source tag and, when junk exclusion is on, leave samples, proofs, screenshots and
text/image side files out of the torrent.

Usage Example:
    creator = get_torrent_creator(paths)
    torrent_path = creator.create(
        input_path="/downloads/Movie.Title.2019.1080p.mkv",
        torrent_dir="./torrents",
        announce_url="https://tracker/announce/KEY",
        source="seedpool.org",
        exclude_junk=True,
    )
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import torf

from seedtools.schemas.config import PathSettings
from seedtools.services.exceptions import TorrentCreationError
from seedtools.utils.process import run_tool
from seedtools.utils.release_naming import generate_release_name

logger = logging.getLogger(__name__)


JUNK_EXCLUDE_PATTERNS = (
    "*sample*", "*proof*", "*screens*", "*screenshots*",
    "*.txt", "*.jpg", "*.jpeg", "*.png", "*.nfo", "*.srr", "*.doc", "*.pdf",
)

DEFAULT_SOURCE = "seedpool.org"


def tracker_torrent_dir(torrent_dir: str, slug: str) -> str:
    """<torrent_dir>/<tracker slug>; torrents are never shared between trackers."""
    return os.path.join(torrent_dir, slug)


def torrent_path_for(input_path: str, torrent_dir: str) -> str:
    """<torrent_dir>/<normalized input name>.torrent"""
    release_name = generate_release_name(Path(input_path).name)
    return os.path.join(torrent_dir, f"{release_name}.torrent")


class TorrentCreator(ABC):
    """Creates a private .torrent for a file or directory."""

    name = "creator"

    @abstractmethod
    def _build(
        self,
        input_path: str,
        output_path: str,
        announce_url: str,
        source: str,
        exclude_junk: bool,
    ) -> None:
        """Write output_path or raise TorrentCreationError."""

    def create(
        self,
        input_path: str,
        torrent_dir: str,
        announce_url: str,
        source: Optional[str] = None,
        exclude_junk: bool = False,
    ) -> str:
        """
        Create the torrent once for the whole input.

        Returns:
            Path to the written .torrent file

        Raises:
            TorrentCreationError: If the input is missing or creation fails
        """
        if not os.path.exists(input_path):
            raise TorrentCreationError(f"Input does not exist: {input_path}", tool=self.name)
        if not announce_url:
            raise TorrentCreationError("No announce URL configured", tool=self.name)

        os.makedirs(torrent_dir, exist_ok=True)
        output_path = torrent_path_for(input_path, torrent_dir)

        logger.info(
            f"Creating torrent with {self.name}: input={input_path}, output={output_path}, "
            f"exclude_junk={exclude_junk}"
        )
        self._build(input_path, output_path, announce_url, source or DEFAULT_SOURCE, exclude_junk)

        if not os.path.exists(output_path):
            raise TorrentCreationError(f"Torrent file not created: {output_path}", tool=self.name)

        logger.info(f"Created torrent: {output_path}")
        return output_path


class MkbrrTorrentCreator(TorrentCreator):
    """Torrent creation through the mkbrr binary."""

    name = "mkbrr"

    def __init__(self, binary: str = "mkbrr"):
        self.binary = binary

    def _build(self, input_path, output_path, announce_url, source, exclude_junk):
        cmd = [
            self.binary, "create",
            "-t", announce_url,
            "-o", output_path,
            "--source", source,
            input_path,
        ]
        if exclude_junk:
            cmd.extend(["--exclude", ",".join(JUNK_EXCLUDE_PATTERNS)])

        result = run_tool(cmd, TorrentCreationError, f"mkbrr failed for {input_path}")
        if result.stdout:
            logger.debug(f"mkbrr stdout:\n{result.stdout}")


class TorfTorrentCreator(TorrentCreator):
    """In-process torrent creation with torf."""

    name = "torf"

    def _build(self, input_path, output_path, announce_url, source, exclude_junk):
        torrent_kwargs = {
            'path': input_path,
            'trackers': [announce_url],
            'private': True,
            'created_by': "seed-tools",
        }
        if source and source.strip():
            torrent_kwargs['source'] = source.strip()
        if exclude_junk:
            torrent_kwargs['exclude_globs'] = list(JUNK_EXCLUDE_PATTERNS)

        try:
            torrent = torf.Torrent(**torrent_kwargs)
            torrent.generate()
            torrent.write(output_path, overwrite=True)
        except torf.TorfError as e:
            raise TorrentCreationError(f"torf failed for {input_path}: {e}", tool=self.name) from e

        logger.debug(f"torf infohash: {torrent.infohash}")


def get_torrent_creator(paths: PathSettings) -> TorrentCreator:
    """Creator selected by paths.torrent_creator."""
    if paths.torrent_creator == "torf":
        return TorfTorrentCreator()
    return MkbrrTorrentCreator(paths.mkbrr)
