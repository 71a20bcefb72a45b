"""Deluge client for seed-tools.

Talks to the Deluge Web UI JSON-RPC API (``/json``). The torrent is referenced by
its absolute path, so deluge-web must run on the same host as seed-tools.
"""

import logging
import os
from typing import Any, Dict, Optional, Tuple

import httpx

from seedtools.config import Config
from seedtools.services.exceptions import ClientInjectionFailure
from seedtools.services.qbittorrent_client import CONNECTION_ERRORS

logger = logging.getLogger(__name__)


class DelugeRpcError(ClientInjectionFailure):
    def __init__(self, message: str, instance: str = "", code: Optional[int] = None):
        super().__init__(message, client="deluge", instance=instance)
        self.code = code


def _get_error_message(error: Any) -> Tuple[str, Optional[int]]:
    if isinstance(error, dict):
        return str(error.get("message") or error), error.get("code")
    return str(error), None


class DelugeClient:
    """Deluge Web UI JSON-RPC client."""

    def __init__(self, webui_url: str, password: str = "", http_client: Optional[httpx.Client] = None):
        self.webui_url = webui_url.rstrip("/")
        self._rpc_url = f"{self.webui_url}/json"
        self._password = password
        self._client = http_client or httpx.Client(timeout=Config.QBITTORRENT_TIMEOUT)
        self._authenticated = False
        self._rpc_id = 0

    def close(self) -> None:
        self._client.close()

    def _next_rpc_id(self) -> int:
        self._rpc_id += 1
        return self._rpc_id

    def _rpc_call(self, method: str, *params: Any) -> Any:
        payload = {
            "id": self._next_rpc_id(),
            "method": method,
            "params": list(params),
        }

        try:
            response = self._client.post(self._rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except CONNECTION_ERRORS + (ValueError,) as e:
            raise DelugeRpcError(f"{method} failed: {e}", self.webui_url) from e

        if not isinstance(data, dict):
            raise DelugeRpcError(f"{method} returned a malformed response: {data!r}", self.webui_url)

        if data.get("error"):
            message, code = _get_error_message(data["error"])
            raise DelugeRpcError(f"{method} returned an error: {message}", self.webui_url, code)

        return data.get("result")

    def login(self) -> None:
        result = self._rpc_call("auth.login", self._password)
        if result is not True:
            raise DelugeRpcError("Deluge Web UI authentication failed: invalid credentials", self.webui_url)
        self._authenticated = True
        logger.debug(f"Logged in to Deluge at {self.webui_url}")

    def add_torrent_file(
        self,
        torrent_path: str,
        download_location: str,
        label: Optional[str] = None,
    ) -> None:
        """Add a local .torrent, seeding from download_location without a recheck."""
        if not self._authenticated:
            self.login()

        options: Dict[str, Any] = {
            "add_paused": False,
            "move_completed": False,
            "skip_checking": True,
            "label": label or "",
            "download_location": download_location,
        }
        self._rpc_call("web.add_torrents", [{"path": os.path.abspath(torrent_path), "options": options}])
        logger.info(f"Torrent added to Deluge {self.webui_url}: {os.path.basename(torrent_path)}")
