"""
ImageHostAdapter Abstract Base Class for seed-tools

This module defines the contract every screenshot/cover host implements. The artifact
builder depends only on this interface, so the scp CDN and ImgBB are interchangeable.

Contract Methods:
    - upload_image(): Upload one image, get its public URL and thumbnail URL
    - upload_screenshot(): Upload a screenshot plus its locally rendered thumbnail
    - upload_file(): Upload a non-image file (sample clip), if the host supports it
    - get_adapter_info(): Describe the host

Usage Example:
    host: ImageHostAdapter = get_image_host(context, tracker)
    hosted = host.upload_screenshot("/shots/Movie_1.jpg", "/shots/Movie_1_thumb.jpg")
    # HostedImage(url='https://...', thumb_url='https://...')
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from seedtools.services.exceptions import UploadFileError


@dataclass(frozen=True)
class HostedImage:
    url: str
    thumb_url: str


class ImageHostError(UploadFileError):
    """Exception raised when an image host operation fails."""

    def __init__(self, message: str, response_data: Optional[Dict] = None):
        super().__init__(message, tool="image-host")
        self.response_data = response_data


class ImageHostAdapter(ABC):
    """
    Abstract base class defining the contract for image hosting adapters.

    Uploads raise ImageHostError (an UploadFileError); callers treat that as
    degrading and simply omit the image.
    """

    supports_files = False

    @abstractmethod
    def upload_image(self, image_path: str) -> HostedImage:
        """
        Upload a single image.

        Returns:
            HostedImage with the full-size URL and a thumbnail URL (the full URL when
            the host has no thumbnails)
        """
        pass

    def upload_screenshot(self, image_path: str, thumb_path: Optional[str] = None) -> HostedImage:
        """
        Upload a screenshot together with its thumbnail.

        Hosts that render their own thumbnails ignore thumb_path.
        """
        return self.upload_image(image_path)

    def upload_file(self, file_path: str) -> str:
        """Upload an arbitrary file and return its public URL."""
        raise ImageHostError(f"{self.__class__.__name__} cannot host {file_path}")

    @abstractmethod
    def get_adapter_info(self) -> Dict[str, Any]:
        """
        Get information about this image host adapter.

        Returns:
            Dictionary with 'name', 'host_name' and 'features'
        """
        pass
