"""
CdnAdapter - ImageHostAdapter for a self-hosted screenshot CDN

Files are pushed with a FileUploader (scp by default) into the tracker's configured
remote path and served from its public image path:

    screenshots:
      remote_path: user@cdn.example:/var/www/img
      image_path:  https://cdn.example/img
"""

import logging
import os
from typing import Any, Dict, Optional

from seedtools.adapters.image_host_adapter import HostedImage, ImageHostAdapter
from seedtools.services.cdn_uploader import FileUploader, ScpUploader, public_url

logger = logging.getLogger(__name__)


class CdnAdapter(ImageHostAdapter):
    """Uploads screenshots, thumbnails and sample clips over scp."""

    supports_files = True

    def __init__(self, remote_path: str, image_path: str, uploader: Optional[FileUploader] = None):
        self.remote_path = remote_path
        self.image_path = image_path.rstrip("/")
        self.uploader = uploader or ScpUploader()

    def upload_image(self, image_path: str) -> HostedImage:
        url = self.upload_file(image_path)
        return HostedImage(url=url, thumb_url=url)

    def upload_screenshot(self, image_path: str, thumb_path: Optional[str] = None) -> HostedImage:
        url = self.upload_file(image_path)
        if not thumb_path:
            return HostedImage(url=url, thumb_url=url)
        return HostedImage(url=url, thumb_url=self.upload_file(thumb_path))

    def upload_file(self, file_path: str) -> str:
        self.uploader.upload(file_path, self.remote_path)
        url = public_url(self.image_path, file_path)
        logger.info(f"Uploaded to CDN: {os.path.basename(file_path)} -> {url}")
        return url

    def get_adapter_info(self) -> Dict[str, Any]:
        return {
            'name': 'CDN Adapter',
            'host_name': self.image_path,
            'features': ['scp_upload', 'sample_clips', 'local_thumbnails'],
        }

    def __repr__(self) -> str:
        return f"<CdnAdapter(remote_path='{self.remote_path}', image_path='{self.image_path}')>"
