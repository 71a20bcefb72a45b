"""
Sync Service for seed-tools

Cross-seeds finished downloads onto Seedpool: for every completed torrent in every
configured qBittorrent instance, ask Seedpool whether the same release exists and,
when it does, add Seedpool's copy by URL with the torrent's current save path so the
client seeds it from the data it already has.

Each instance is independent; a failing instance or item is logged and counted, and
the sync moves on.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from seedtools.config import Config
from seedtools.schemas.config import QbittorrentInstance
from seedtools.services.dupe_checker import DupeChecker
from seedtools.services.exceptions import ClientInjectionFailure, DedupeQueryError
from seedtools.services.qbittorrent_client import QBittorrentClient

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    checked: int = 0
    added: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class SyncService:
    """
    Args:
        instances: qBittorrent instances from the RunContext
        checker: Seedpool DupeChecker
        client_factory: Builds a client for an instance (tests swap in mocks)
        delay: Pause in seconds between checked torrents
        sleep: Sleep function (tests pass a no-op)
    """

    def __init__(
        self,
        instances: Sequence[QbittorrentInstance],
        checker: DupeChecker,
        client_factory: Optional[Callable[[QbittorrentInstance], QBittorrentClient]] = None,
        delay: float = Config.SYNC_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.instances = list(instances)
        self.checker = checker
        self._client_factory = client_factory or (
            lambda inst: QBittorrentClient(inst.webui_url, inst.username, inst.password)
        )
        self.delay = delay
        self._sleep = sleep

    def run(self) -> SyncReport:
        report = SyncReport()
        if not self.instances:
            logger.warning("No qBittorrent instances configured; nothing to sync")
            return report

        for instance in self.instances:
            logger.info(f"Syncing qBittorrent instance {instance.webui_url}")
            client = self._client_factory(instance)
            try:
                self._sync_instance(client, instance, report)
            except ClientInjectionFailure as e:
                logger.error(f"Sync of {instance.webui_url} failed: {e}")
                report.errors.append(str(e))
            finally:
                client.close()

        logger.info(
            f"Sync finished: {report.checked} checked, {len(report.added)} added, {len(report.errors)} errors"
        )
        return report

    def _sync_instance(self, client: QBittorrentClient, instance: QbittorrentInstance, report: SyncReport) -> None:
        torrents = client.completed_torrents()
        logger.info(f"{len(torrents)} completed torrent(s) on {instance.webui_url}")

        for index, torrent in enumerate(torrents):
            if index:
                self._sleep(self.delay)

            name = torrent.get("name") or ""
            save_path = torrent.get("save_path") or instance.default_save_path or ""
            if not name:
                continue
            report.checked += 1

            try:
                link = self.checker.find_existing(name)
            except DedupeQueryError as e:
                logger.error(f"Seedpool check failed for '{name}': {e}")
                report.errors.append(f"{name}: {e}")
                continue

            if link is None:
                logger.info(f"'{name}' is not on Seedpool")
                continue

            try:
                client.add_torrent_url(link, save_path, category=instance.category)
            except ClientInjectionFailure as e:
                logger.error(f"Failed to add '{name}' to {instance.webui_url}: {e}")
                report.errors.append(f"{name}: {e}")
                continue

            logger.info(f"Added Seedpool torrent for '{name}' with save path '{save_path}'")
            report.added.append(name)
