"""
Typed Exception Hierarchy for seed-tools

This module defines the errors raised by the upload pipeline stages together with
a retry decorator for transient network failures.

Exception Hierarchy:
    SeedToolsError (base)
    ├── ClassificationAmbiguous (non-fatal, degrades to "unknown")
    ├── NoEligibleMedia (fatal for the run)
    ├── ExternalToolError
    │   ├── TorrentCreationError (fatal for the run)
    │   ├── MediaInspectionError (degrading)
    │   ├── ScreenshotError (degrading)
    │   └── UploadFileError (degrading)
    ├── MetadataLookupFailure (fatal only for the TMDB id)
    ├── DuplicateDetected (not an error, redirects the run to injection)
    ├── TrackerAPIError
    │   ├── TrackerRejected (fatal for that tracker only)
    │   ├── DedupeQueryError (fatal for that tracker only)
    │   └── NetworkRetryableError (retryable with exponential backoff)
    ├── ClientInjectionFailure (logged per client instance)
    └── ConfigValidationError

The @retry_on_network_error decorator retries idempotent calls with:
    - Maximum 5 retries
    - Exponential backoff: 2^n seconds delay
    - Comprehensive logging of retry attempts
"""

import functools
import logging
import time
from typing import Callable, List, Optional, TypeVar, ParamSpec

logger = logging.getLogger(__name__)

P = ParamSpec('P')
T = TypeVar('T')


# ============================================================================
# Exception Hierarchy
# ============================================================================

class SeedToolsError(Exception):
    """Base exception for every error raised by seed-tools."""


class ClassificationAmbiguous(SeedToolsError):
    """The release name matched no classification rule."""


class NoEligibleMedia(SeedToolsError):
    """The input path holds no file the selected content type can upload."""


class ExternalToolError(SeedToolsError):
    """
    An external binary (mkbrr, ffmpeg, ffprobe, scp, pdftoppm, unrar) failed.

    Args:
        message: Human-readable error description
        tool: Name of the binary that failed
        returncode: Process exit status if the process ran
        stderr: Captured standard error, trimmed
    """

    def __init__(
        self,
        message: str,
        tool: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.tool = tool
        self.returncode = returncode
        self.stderr = (stderr or '').strip()

    def __str__(self) -> str:
        if self.tool and self.returncode is not None:
            return f"{self.tool} exited with {self.returncode}: {self.message}"
        return self.message


class TorrentCreationError(ExternalToolError):
    """Torrent creation failed. Always fatal to the run."""


class MediaInspectionError(ExternalToolError):
    """Media report generation failed."""


class ScreenshotError(ExternalToolError):
    """Sample clip, screenshot or page extraction failed."""


class UploadFileError(ExternalToolError):
    """Pushing a generated file to the CDN or image host failed."""


class MetadataLookupFailure(SeedToolsError):
    """
    A metadata provider could not be queried.

    Only raised for the TMDB id lookup, which drives category selection. Every other
    provider degrades to defaults instead.
    """

    def __init__(self, message: str, provider: str = "tmdb"):
        super().__init__(message)
        self.provider = provider


class DuplicateDetected(SeedToolsError):
    """
    The release already exists on the tracker.

    Not a failure: the run skips artifact building and uploading and seeds the
    existing torrent instead.
    """

    def __init__(self, name: str, download_link: str, tracker: Optional[str] = None):
        super().__init__(f"Duplicate found for '{name}'")
        self.name = name
        self.download_link = download_link
        self.tracker = tracker


class TrackerAPIError(SeedToolsError):
    """
    Base exception for tracker API errors (non-retryable).

    Use this for errors that should fail fast:
    - Invalid API key or announce key
    - Invalid request parameters
    - Permission denied
    """

    def __init__(self, message: str, status_code: int = None, response_data=None):
        """
        Initialize TrackerAPIError.

        Args:
            message: Human-readable error description
            status_code: HTTP status code if applicable
            response_data: Raw response data for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.__class__.__name__} (HTTP {self.status_code}): {self.message}"
        return f"{self.__class__.__name__}: {self.message}"


class TrackerRejected(TrackerAPIError):
    """The tracker refused the upload (non-2xx or a failure marker in the body)."""


class DedupeQueryError(TrackerAPIError):
    """The tracker search could not be completed. Never read as 'no duplicate'."""


class NetworkRetryableError(TrackerAPIError):
    """
    Exception for network-level errors that should be retried.

    Use this for transient network issues:
    - Connection timeouts
    - DNS resolution failures
    - Temporary service unavailability (HTTP 503)
    - Rate limiting (HTTP 429)
    """

    def __init__(self, message: str, original_exception: Exception = None, retry_after: int = None):
        """
        Initialize NetworkRetryableError.

        Args:
            message: Human-readable error description
            original_exception: Original exception that triggered this error
            retry_after: Suggested retry delay in seconds (e.g., from Retry-After header)
        """
        super().__init__(message)
        self.original_exception = original_exception
        self.retry_after = retry_after


class ClientInjectionFailure(SeedToolsError):
    """Adding a torrent to one download-client instance failed."""

    def __init__(self, message: str, client: str = "", instance: str = ""):
        super().__init__(message)
        self.message = message
        self.client = client
        self.instance = instance

    def __str__(self) -> str:
        if self.instance:
            return f"{self.client} at {self.instance}: {self.message}"
        return self.message


class ConfigValidationError(SeedToolsError):
    """Raised when configuration files are missing or invalid."""

    def __init__(self, message: str, errors: List[str] = None):
        super().__init__(message)
        self.errors = errors or []


# ============================================================================
# Retry Decorator
# ============================================================================

def retry_on_network_error(
    max_retries: int = 5,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: int = 2,
    retryable_exceptions: tuple = (NetworkRetryableError,)
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator for automatic retry with exponential backoff on network errors.

    delay = min(base_delay * (exponential_base ^ attempt), max_delay), replaced by the
    exception's retry_after hint when one is present.

    Only decorate idempotent calls (searches, lookups, image uploads). Tracker upload
    POSTs are never wrapped.

    Args:
        max_retries: Maximum number of retry attempts (default: 5)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)
        exponential_base: Base for exponential calculation (default: 2)
        retryable_exceptions: Tuple of exception types to retry

    Example:
        @retry_on_network_error(max_retries=3)
        def search(name):
            return client.get(url, params={"name": name})
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except retryable_exceptions as e:
                    if attempt >= max_retries:
                        logger.error(
                            f"Max retries ({max_retries}) exceeded for {func.__name__}. "
                            f"Final error: {e}"
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** attempt), max_delay)
                    if isinstance(e, NetworkRetryableError) and e.retry_after:
                        delay = min(e.retry_after, max_delay)

                    logger.warning(
                        f"Attempt {attempt + 1}/{max_retries} failed for {func.__name__}: {e}. "
                        f"Retrying in {delay}s..."
                    )
                    time.sleep(delay)

                except SeedToolsError as e:
                    logger.error(f"Non-retryable error in {func.__name__}: {e}. Not retrying.")
                    raise

        return wrapper

    return decorator


# ============================================================================
# Convenience Functions
# ============================================================================

def is_retryable_error(exception: Exception) -> bool:
    """Check if an exception is retryable."""
    return isinstance(exception, NetworkRetryableError)


def classify_http_error(status_code: int, message: str, response_data=None) -> TrackerAPIError:
    """
    Classify HTTP errors into appropriate exception types.

    Args:
        status_code: HTTP status code
        message: Error message
        response_data: Optional response data for debugging

    Returns:
        NetworkRetryableError for 429/502/503/504, TrackerAPIError otherwise
    """
    if status_code == 429:
        retry_after = None
        if isinstance(response_data, dict) and 'retry_after' in response_data:
            retry_after = int(response_data['retry_after'])
        return NetworkRetryableError(message=f"Rate limited: {message}", retry_after=retry_after)

    if status_code == 503:
        return NetworkRetryableError(message=f"Service temporarily unavailable: {message}")

    if status_code in (502, 504):
        return NetworkRetryableError(message=f"Gateway error (HTTP {status_code}): {message}")

    return TrackerAPIError(message=message, status_code=status_code, response_data=response_data)
