"""
TrackerAdapter Abstract Base Class for seed-tools

This module defines the TrackerAdapter abstract base class (ABC) that establishes
the contract for all tracker implementations. The pipeline works with any tracker
through this interface and never looks at tracker-specific details.

Architecture Pattern:
    - Pipeline depends only on TrackerAdapter interface
    - Concrete adapters (SeedpoolAdapter, TorrentLeechAdapter) implement it
    - TrackerFactory picks the adapter named by the tracker YAML

Contract Methods:
    - category_for(): Pure mapping of a release to (category_id, type_id)
    - build_form(): Multipart fields and files for the upload POST
    - upload(): Submit the upload (never retried)
    - find_existing(): Download link of an existing copy, or None

Usage Example:
    adapter: TrackerAdapter = TrackerFactory(context).get_adapter("seedpool")

    link = adapter.find_existing(release.base_name)
    if link is None:
        result = adapter.upload(artifact, release, ids)
"""

import logging
from abc import ABC, abstractmethod
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import httpx

from seedtools.config import Config
from seedtools.schemas.config import TrackerSettings
from seedtools.services.artifact_builder import UploadArtifact
from seedtools.services.classifier import ReleaseInfo
from seedtools.services.exceptions import TrackerAPIError, TrackerRejected
from seedtools.services.metadata_resolver import ExternalIds
from seedtools.utils.tmdb_auth import mask_credential

logger = logging.getLogger(__name__)

# Form fields are plain strings; file fields are local paths opened at send time.
FormFields = Dict[str, str]
FormFiles = Dict[str, str]
Category = Tuple[int, int]

# Form fields carrying the submitted category ids, per tracker form
CATEGORY_FIELDS = ("category_id", "type_id", "category")


class TrackerAdapter(ABC):
    """
    Abstract base class defining the contract for tracker adapters.

    Implementations should:
        - Keep category_for() pure (no I/O, same answer for the same release)
        - Raise TrackerRejected when the tracker refuses an upload
        - Never retry upload POSTs; a retried POST can create a second torrent
        - Log request summaries at DEBUG and outcomes at INFO
    """

    name = "tracker"

    def __init__(
        self,
        settings: TrackerSettings,
        http_client: Optional[httpx.Client] = None,
        timeout: int = Config.API_REQUEST_TIMEOUT,
    ):
        self.settings = settings
        self.slug = settings.slug
        self._client = http_client or httpx.Client(timeout=timeout, follow_redirects=True)

    @abstractmethod
    def category_for(self, release: ReleaseInfo, music_format: Optional[str] = None) -> Category:
        """
        Map a release to the tracker's (category_id, type_id).

        Trackers without type ids return 0 as type_id.
        """
        pass

    @abstractmethod
    def build_form(
        self,
        artifact: UploadArtifact,
        release: ReleaseInfo,
        ids: ExternalIds,
        category: Category,
        name: Optional[str] = None,
    ) -> Tuple[FormFields, FormFiles]:
        """
        Multipart form for the upload POST.

        Args:
            artifact: Built upload artifact
            release: Classified release
            ids: Resolved external ids (all zero in custom mode)
            category: (category_id, type_id) to submit
            name: Upload name; adapters derive one from the release when None

        Returns:
            (text fields, file fields mapping field name -> local path)
        """
        pass

    def headers(self) -> Dict[str, str]:
        return {}

    def find_existing(self, name: str) -> Optional[str]:
        """
        Download link of a copy already on the tracker, or None.

        Trackers without a search API return None and rely on server-side duplicate
        rejection at upload time.
        """
        return None

    def download_existing(self, link: str, destination: Path) -> Path:
        """Save an existing release's .torrent to destination."""
        raise TrackerAPIError(f"{self.name} cannot download existing torrents")

    def check_response(self, response: httpx.Response) -> Dict[str, Any]:
        """
        Upload result dict; raises TrackerRejected on a refused upload.

        Returns:
            {'success': True, 'message': str, 'response_data': parsed body or text}
        """
        body_text = response.text or ""
        logger.debug(f"{self.name} upload response: HTTP {response.status_code} {body_text[:500]}")

        try:
            response_data: Any = response.json()
        except ValueError:
            response_data = body_text[:1000]

        if not 200 <= response.status_code < 300:
            raise TrackerRejected(
                f"{self.name} rejected the upload",
                status_code=response.status_code,
                response_data=response_data,
            )
        return {
            'success': True,
            'message': f"Upload successful (HTTP {response.status_code})",
            'response_data': response_data,
        }

    def upload(
        self,
        artifact: UploadArtifact,
        release: ReleaseInfo,
        ids: ExternalIds,
        category: Optional[Category] = None,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Submit the upload once.

        Args:
            category: Explicit (category_id, type_id); mapped from the release when None
            name: Explicit upload name

        Raises:
            TrackerRejected: Non-2xx or a tracker-specific failure marker
            TrackerAPIError: Transport failure (not retried)
        """
        if category is None:
            category = self.category_for(release, artifact.music_format)

        fields, files = self.build_form(artifact, release, ids, category, name)
        sent_ids = ", ".join(f"{key}={fields[key]}" for key in CATEGORY_FIELDS if key in fields)
        logger.info(f"Uploading to {self.name}: name={fields.get('name', release.base_name)}, {sent_ids}")
        logger.debug(f"{self.name} form fields: {sorted(fields)} files: {sorted(files)}")

        with ExitStack() as stack:
            multipart = {
                field: (Path(path).name, stack.enter_context(open(path, 'rb')))
                for field, path in files.items()
            }
            try:
                response = self._client.post(
                    self.settings.upload_url,
                    data=fields,
                    files=multipart,
                    headers=self.headers(),
                )
            except httpx.HTTPError as e:
                raise TrackerAPIError(f"Upload request to {self.name} failed: {e}") from e

        result = self.check_response(response)
        logger.info(f"Uploaded to {self.name}: {result['message']}")
        return result

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(slug='{self.slug}', api_key='{mask_credential(self.settings.api_key)}')>"
