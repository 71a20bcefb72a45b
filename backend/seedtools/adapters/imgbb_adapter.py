"""
ImgBBAdapter - ImageHostAdapter Implementation for ImgBB

This module implements the ImageHostAdapter interface for the ImgBB image
hosting service. When an ImgBB key is configured, screenshots go here instead of
the scp CDN and no sample clip is produced.

Features:
    - API key authentication
    - Base64 image upload
    - Thumbnail URLs included
    - Retry with backoff on transient network errors

API Documentation:
    https://api.imgbb.com/

Usage Example:
    adapter = ImgBBAdapter(api_key="your_api_key")
    hosted = adapter.upload_image("/path/to/screenshot.jpg")
    print(hosted.url, hosted.thumb_url)
"""

import base64
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from seedtools.adapters.image_host_adapter import HostedImage, ImageHostAdapter, ImageHostError
from seedtools.config import Config
from seedtools.services.exceptions import NetworkRetryableError, retry_on_network_error
from seedtools.utils.tmdb_auth import mask_credential

logger = logging.getLogger(__name__)


class ImgBBAdapter(ImageHostAdapter):
    """
    ImgBB image hosting adapter implementing ImageHostAdapter interface.

    Attributes:
        api_key: ImgBB API key
        expiration: Optional image expiration in seconds (0 = never)
    """

    API_URL = "https://api.imgbb.com/1/upload"

    def __init__(
        self,
        api_key: str,
        expiration: int = 0,
        timeout: int = Config.IMAGE_HOST_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.expiration = expiration
        self._client = http_client or httpx.Client(timeout=timeout)

        logger.debug(
            f"ImgBBAdapter initialized "
            f"(expiration={'never' if expiration == 0 else f'{expiration}s'})"
        )

    @retry_on_network_error(max_retries=Config.MAX_RETRIES)
    def upload_image(self, image_path: str) -> HostedImage:
        """
        Upload a single image to ImgBB with automatic retry on network errors.

        Raises:
            ImageHostError: If upload fails (non-retryable)
            NetworkRetryableError: If network issues persist after retries
        """
        path = Path(image_path)

        if not path.exists():
            raise ImageHostError(f"Image file not found: {image_path}")

        logger.info(f"Uploading image to ImgBB: {path.name}")

        with open(path, 'rb') as f:
            image_data = base64.b64encode(f.read()).decode('utf-8')

        data = {
            'key': self.api_key,
            'image': image_data,
            'name': path.stem,
        }
        if self.expiration > 0:
            data['expiration'] = str(self.expiration)

        try:
            response = self._client.post(self.API_URL, data=data)
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            raise NetworkRetryableError(f"Network error uploading to ImgBB: {e}", original_exception=e) from e
        except httpx.HTTPError as e:
            raise ImageHostError(f"HTTP error uploading to ImgBB: {e}") from e

        if response.status_code in (429, 502, 503, 504):
            raise NetworkRetryableError(f"ImgBB temporarily unavailable (HTTP {response.status_code})")

        try:
            result = response.json()
        except ValueError as e:
            raise ImageHostError(f"ImgBB returned a non-JSON response (HTTP {response.status_code})") from e

        if response.status_code >= 400 or not result.get('success', True):
            error_msg = (result.get('error') or {}).get('message', f"HTTP {response.status_code}")
            raise ImageHostError(f"ImgBB upload failed: {error_msg}", result)

        img_data = result.get('data') or {}
        url = img_data.get('url') or (img_data.get('image') or {}).get('url')
        if not url:
            raise ImageHostError("ImgBB response carries no image URL", result)
        thumb_url = (img_data.get('thumb') or {}).get('url') or url

        logger.info(f"Uploaded to ImgBB: {path.name} -> {url}")
        return HostedImage(url=url, thumb_url=thumb_url)

    def get_adapter_info(self) -> Dict[str, Any]:
        return {
            'name': 'ImgBB Adapter',
            'host_name': 'ImgBB',
            'host_url': 'https://imgbb.com',
            'features': ['api_upload', 'auto_thumbnails', 'optional_expiration'],
        }

    def __repr__(self) -> str:
        return f"<ImgBBAdapter(api_key='{mask_credential(self.api_key)}', expiration={self.expiration})>"
