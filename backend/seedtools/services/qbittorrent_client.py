"""
QBittorrent Client Service for seed-tools

Dedicated module for all qBittorrent Web API interactions.

Features:
    - Authentication with session cookie management
    - Torrent injection from a .torrent file with save path and category
    - Torrent injection by URL (sync mode)
    - Listing completed torrents (sync mode)
    - Connection testing

API Reference: https://github.com/qbittorrent/qBittorrent/wiki/WebUI-API-(qBittorrent-4.1)
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from seedtools.config import Config
from seedtools.services.exceptions import ClientInjectionFailure

logger = logging.getLogger(__name__)

# InvalidURL (bad host or port in the instance URL) is not an HTTPError subclass
CONNECTION_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class QBittorrentError(ClientInjectionFailure):
    """Base exception for qBittorrent operations."""

    def __init__(self, message: str, instance: str = ""):
        super().__init__(message, client="qbittorrent", instance=instance)


class QBittorrentAuthError(QBittorrentError):
    """Authentication failed."""
    pass


class QBittorrentClient:
    """
    Client for one qBittorrent Web UI.

    The session cookie returned by the login call is kept on the underlying
    httpx.Client, so a single instance can issue several requests after one login.

    Args:
        webui_url: qBittorrent Web UI address (host:port or full URL)
        username: Web UI username
        password: Web UI password
        http_client: Optional preconfigured httpx.Client (tests inject a mock)
    """

    def __init__(
        self,
        webui_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        if webui_url and not webui_url.startswith('http'):
            webui_url = f"http://{webui_url}"
        self.webui_url = (webui_url or '').rstrip('/')
        self.username = username or ''
        self.password = password or ''
        self._client = http_client or httpx.Client(timeout=Config.QBITTORRENT_TIMEOUT)
        self._authenticated = False

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> 'QBittorrentClient':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def login(self) -> None:
        """
        Authenticate with qBittorrent.

        Raises:
            QBittorrentAuthError: If the Web UI does not answer "Ok."
        """
        logger.debug(f"Authenticating with qBittorrent at {self.webui_url}")

        try:
            response = self._client.post(
                f"{self.webui_url}/api/v2/auth/login",
                data={"username": self.username, "password": self.password},
            )
        except CONNECTION_ERRORS as e:
            raise QBittorrentError(f"qBittorrent connection error: {e}", self.webui_url) from e

        if response.text.strip() != "Ok.":
            raise QBittorrentAuthError(
                f"qBittorrent authentication failed: {response.text.strip() or response.status_code}",
                self.webui_url,
            )

        self._authenticated = True
        logger.debug("Authenticated with qBittorrent")

    def _ensure_login(self) -> None:
        if not self._authenticated:
            self.login()

    def add_torrent_file(
        self,
        torrent_path: str,
        save_path: str,
        category: Optional[str] = None,
        skip_checking: bool = True,
        paused: bool = False,
    ) -> None:
        """
        Inject a .torrent file for seeding.

        Args:
            torrent_path: Path to the .torrent file on disk
            save_path: Directory holding the content as qBittorrent sees it
            category: qBittorrent category
            skip_checking: Skip hash verification (content already complete)
            paused: Start in paused state

        Raises:
            QBittorrentError: On connection errors or a failure answer
        """
        if not torrent_path or not os.path.exists(torrent_path):
            raise QBittorrentError(f"Torrent file not found: {torrent_path}", self.webui_url)

        self._ensure_login()

        with open(torrent_path, 'rb') as f:
            torrent_data = f.read()

        logger.info(
            f"Injecting torrent to qBittorrent {self.webui_url}: category={category}, save_path={save_path}"
        )

        data = self._add_options(save_path, category, skip_checking, paused)
        files = {"torrents": (os.path.basename(torrent_path), torrent_data, "application/x-bittorrent")}
        self._post_add(data, files=files)

    def add_torrent_url(self, url: str, save_path: str, category: Optional[str] = None) -> None:
        """Add a torrent by download URL; qBittorrent fetches the file itself."""
        self._ensure_login()

        data = self._add_options(save_path, category, skip_checking=True, paused=False)
        data["urls"] = url
        self._post_add(data)

    def completed_torrents(self) -> List[Dict[str, Any]]:
        """Torrents whose progress reached 100%."""
        self._ensure_login()

        try:
            response = self._client.get(f"{self.webui_url}/api/v2/torrents/info")
            response.raise_for_status()
            torrents = response.json()
        except CONNECTION_ERRORS + (ValueError,) as e:
            raise QBittorrentError(f"Failed to list torrents: {e}", self.webui_url) from e

        return [t for t in torrents if float(t.get("progress", 0)) >= 1.0]

    def test_connection(self) -> Dict[str, Any]:
        """
        Test connectivity to qBittorrent.

        Returns:
            Dict with 'success', 'message', and optionally 'version'
        """
        try:
            self.login()
            version_response = self._client.get(f"{self.webui_url}/api/v2/app/version")
            version = version_response.text if version_response.status_code == 200 else 'unknown'
            return {'success': True, 'message': f'Connected to qBittorrent {version}', 'version': version}
        except QBittorrentError as e:
            return {'success': False, 'message': str(e)}
        except CONNECTION_ERRORS as e:
            return {'success': False, 'message': f'Connection failed: {e}'}

    @staticmethod
    def _add_options(
        save_path: str,
        category: Optional[str],
        skip_checking: bool,
        paused: bool,
    ) -> Dict[str, str]:
        data = {
            "savepath": save_path,
            "skip_checking": "true" if skip_checking else "false",
            "paused": "true" if paused else "false",
        }
        if category:
            data["category"] = category
        return data

    def _post_add(self, data: Dict[str, str], files: Optional[Dict[str, Any]] = None) -> None:
        try:
            response = self._client.post(f"{self.webui_url}/api/v2/torrents/add", data=data, files=files)
        except CONNECTION_ERRORS as e:
            raise QBittorrentError(f"qBittorrent connection error: {e}", self.webui_url) from e

        body = response.text
        if response.status_code >= 400 or "fail" in body.lower():
            raise QBittorrentError(
                f"Failed to add torrent (HTTP {response.status_code}): {body.strip()}", self.webui_url
            )

        logger.info(f"Torrent added to qBittorrent {self.webui_url}")
