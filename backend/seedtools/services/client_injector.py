"""
Client Injector

Pushes a finished .torrent into every configured qBittorrent and Deluge instance so the
release starts seeding from where it already sits on disk.

Save path rule, per instance:
    save_root = instance.default_save_path or the input's parent directory
    If the input is a directory but the torrent describes a single file, the file lives
    inside that directory, so the save path becomes <save_root>/<input name>.

Every instance is independent: a failure is logged and collected, never raised.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

import torf

from seedtools.schemas.config import DelugeInstance, QbittorrentInstance
from seedtools.services.deluge_client import DelugeClient
from seedtools.services.exceptions import ClientInjectionFailure
from seedtools.services.qbittorrent_client import QBittorrentClient

logger = logging.getLogger(__name__)


@dataclass
class InjectionReport:
    """Which instances accepted the torrent and which did not."""
    succeeded: List[str] = field(default_factory=list)
    failures: List[ClientInjectionFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def is_single_file_torrent(torrent_path: str) -> bool:
    """True when the metainfo describes one file rather than a directory tree."""
    try:
        torrent = torf.Torrent.read(torrent_path)
    except torf.TorfError as e:
        raise ClientInjectionFailure(f"Unreadable torrent {torrent_path}: {e}") from e
    return torrent.mode == "singlefile"


def resolve_save_path(
    input_path: str,
    default_save_path: Optional[str],
    single_file: bool,
) -> str:
    """Absolute directory a client should seed the torrent from."""
    input_abs = os.path.abspath(input_path)
    save_root = default_save_path or os.path.dirname(input_abs)
    if os.path.isdir(input_abs) and single_file:
        return os.path.join(save_root, os.path.basename(input_abs))
    return save_root


class ClientInjector:
    """
    Adds torrents to all configured download clients.

    Args:
        qbittorrent: qBittorrent instances from the RunContext
        deluge: Deluge instances from the RunContext
        qbittorrent_factory: Builds a client for an instance (tests swap in mocks)
        deluge_factory: Same for Deluge
    """

    def __init__(
        self,
        qbittorrent: Sequence[QbittorrentInstance] = (),
        deluge: Sequence[DelugeInstance] = (),
        qbittorrent_factory: Optional[Callable[[QbittorrentInstance], QBittorrentClient]] = None,
        deluge_factory: Optional[Callable[[DelugeInstance], DelugeClient]] = None,
    ):
        self.qbittorrent = list(qbittorrent)
        self.deluge = list(deluge)
        self._qbittorrent_factory = qbittorrent_factory or (
            lambda inst: QBittorrentClient(inst.webui_url, inst.username, inst.password)
        )
        self._deluge_factory = deluge_factory or (lambda inst: DelugeClient(inst.webui_url, inst.password))

    def inject(self, torrent_path: str, input_path: str) -> InjectionReport:
        """
        Add torrent_path to every instance.

        Args:
            torrent_path: The .torrent file to add
            input_path: Release path on disk, used to derive the save path

        Returns:
            InjectionReport listing successes and collected failures
        """
        report = InjectionReport()
        if not self.qbittorrent and not self.deluge:
            logger.info("No download clients configured, skipping injection")
            return report

        try:
            single_file = is_single_file_torrent(torrent_path)
        except ClientInjectionFailure as e:
            logger.error(str(e))
            report.failures.append(e)
            return report

        for instance in self.qbittorrent:
            save_path = resolve_save_path(input_path, instance.default_save_path, single_file)
            self._add_to_instance(
                report, "qbittorrent", instance.webui_url, torrent_path,
                lambda: self._qbittorrent_factory(instance),
                lambda client: client.add_torrent_file(torrent_path, save_path, category=instance.category),
            )

        for instance in self.deluge:
            download_location = os.path.abspath(
                resolve_save_path(input_path, instance.default_save_path, single_file)
            )
            self._add_to_instance(
                report, "deluge", instance.webui_url, torrent_path,
                lambda: self._deluge_factory(instance),
                lambda client: client.add_torrent_file(torrent_path, download_location, label=instance.label),
            )

        logger.info(
            f"Injection finished for {os.path.basename(torrent_path)}: "
            f"{len(report.succeeded)} ok, {len(report.failures)} failed"
        )
        return report

    @staticmethod
    def _add_to_instance(
        report: InjectionReport,
        kind: str,
        webui_url: str,
        torrent_path: str,
        make_client: Callable[[], Any],
        add: Callable[[Any], None],
    ) -> None:
        client = None
        try:
            client = make_client()
            add(client)
            report.succeeded.append(f"{kind}:{webui_url}")
        except ClientInjectionFailure as e:
            logger.error(f"Error adding '{torrent_path}' to {kind}: {e}")
            report.failures.append(e)
        except Exception as e:
            logger.error(f"Unexpected error adding '{torrent_path}' to {kind}: {type(e).__name__}: {e}", exc_info=True)
            report.failures.append(
                ClientInjectionFailure(f"{type(e).__name__}: {e}", client=kind, instance=webui_url)
            )
        finally:
            if client is not None:
                client.close()
