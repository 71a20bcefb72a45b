"""
File upload to the screenshot CDN.

The CDN is a plain web root reachable over scp: files are copied to a remote path and
then served from a public base URL.
"""

import logging
import os
from abc import ABC, abstractmethod

from seedtools.services.exceptions import UploadFileError
from seedtools.utils.process import run_tool

logger = logging.getLogger(__name__)


class FileUploader(ABC):
    @abstractmethod
    def upload(self, local_path: str, remote_path: str) -> None:
        """Copy local_path into the remote_path directory."""


class ScpUploader(FileUploader):
    """Copies files with scp (key-based auth from the user's ssh config)."""

    def __init__(self, scp_path: str = "scp"):
        self.scp_path = scp_path

    def upload(self, local_path: str, remote_path: str) -> None:
        if not os.path.exists(local_path):
            raise UploadFileError(f"Local file not found: {local_path}", tool=self.scp_path)

        logger.debug(f"Uploading {os.path.basename(local_path)} to {remote_path}")
        run_tool([self.scp_path, local_path, remote_path], UploadFileError, f"scp of {local_path} failed")


def public_url(image_path: str, local_path: str) -> str:
    """Public URL of an uploaded file: <image_path>/<file name>."""
    return f"{image_path.rstrip('/')}/{os.path.basename(local_path)}"
