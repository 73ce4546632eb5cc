"""Object storage uploads: signed single-object PUT to an S3-compatible bucket."""

import mimetypes
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import requests

from ..config import StorageSettings, get_storage_settings
from ..errors import ConfigurationError, TransportError, UploadRejectedError
from ..logging_config import get_logger, log_performance
from .signer import Signer, encode_path

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
UNSAFE_KEY_CHARACTERS = re.compile(r"[^A-Za-z0-9.-]")

# Upstream bodies are kept for diagnostics but bounded
MAX_ERROR_BODY_LENGTH = 2000


def sanitize_filename(filename: str) -> str:
    """Replace every character outside ``[A-Za-z0-9.-]`` with ``_``."""
    return UNSAFE_KEY_CHARACTERS.sub("_", filename)


def generate_object_key(filename: str, timestamp: datetime | None = None) -> str:
    """
    Build the storage key ``<millisecond-timestamp>-<sanitized-filename>``.

    Args:
        filename: Original filename as supplied by the user
        timestamp: Upload time (defaults to now)

    Returns:
        str: Object key, unique per (millisecond, filename)
    """
    timestamp = timestamp or datetime.now(UTC)
    millis = int(timestamp.timestamp() * 1000)
    return f"{millis}-{sanitize_filename(filename)}"


def guess_content_type(filename: str) -> str:
    """Guess a MIME type from the filename, falling back to octet-stream."""
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or DEFAULT_CONTENT_TYPE


@dataclass
class UploadResult:
    """Outcome of a successful PUT."""

    object_key: str
    url: str
    content_type: str
    size: int
    payload_sha256: str
    uploaded_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "object_key": self.object_key,
            "url": self.url,
            "content_type": self.content_type,
            "size": self.size,
            "payload_sha256": self.payload_sha256,
            "uploaded_at": self.uploaded_at.isoformat(),
        }


class ObjectUploader:
    """Uploads one object per call with a SigV4-signed PUT."""

    def __init__(
        self,
        settings: StorageSettings | None = None,
        session: requests.Session | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the uploader.

        Args:
            settings: Storage settings (defaults to values read from configuration)
            session: HTTP session used for the PUT
            clock: Returns the current UTC time; captured once per upload
        """
        self.settings = settings or get_storage_settings()
        self.session = session or requests.Session()
        self._clock = clock or (lambda: datetime.now(UTC))

    def ensure_configured(self) -> None:
        """
        Raise before any network activity when credentials are incomplete.

        Raises:
            ConfigurationError: If access key, secret key or bucket is missing
        """
        missing = self.settings.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Object storage is not configured. Please set {', '.join(missing)}.",
                missing=missing,
            )

    def object_url(self, object_key: str) -> str:
        return f"https://{self.settings.host}{encode_path(object_key)}"

    def upload(self, file_data: bytes, filename: str, content_type: str | None = None) -> UploadResult:
        """
        Store ``file_data`` under a fresh object key.

        Args:
            file_data: Raw bytes to store
            filename: Original filename, used to derive the key
            content_type: MIME type (guessed from the filename when omitted)

        Returns:
            UploadResult: Key and public URL of the stored object

        Raises:
            ConfigurationError: If credentials are missing
            TransportError: If storage could not be reached
            UploadRejectedError: If storage answered with a non-2xx status
        """
        self.ensure_configured()

        content_type = content_type or guess_content_type(filename)
        timestamp = self._clock()
        object_key = generate_object_key(filename, timestamp)
        path = encode_path(object_key)
        url = self.object_url(object_key)

        signer = Signer(
            access_key_id=self.settings.access_key_id,  # type: ignore[arg-type]
            secret_key=self.settings.secret_access_key,  # type: ignore[arg-type]
            region=self.settings.region,
        )
        headers = signer.build_put_headers(self.settings.host, path, file_data, content_type, timestamp)

        logger.info("object_upload_started", object_key=object_key, size=len(file_data), content_type=content_type)
        start_time = time.perf_counter()

        try:
            response = self.session.put(url, data=file_data, headers=headers, timeout=self.settings.timeout)
        except requests.RequestException as e:
            raise TransportError(
                f"Failed to reach object storage for '{filename}': {e}",
                code="storage_unreachable",
                details={"object_key": object_key},
                original_exception=e,
            ) from e

        if not 200 <= response.status_code < 300:
            body = response.text[:MAX_ERROR_BODY_LENGTH]
            logger.error("object_upload_rejected", object_key=object_key, status_code=response.status_code, body=body)
            raise UploadRejectedError(
                f"Failed to upload '{filename}' to object storage (HTTP {response.status_code})",
                status_code=response.status_code,
                body=body,
                details={"object_key": object_key},
            )

        log_performance("object_upload", time.perf_counter() - start_time, object_key=object_key, size=len(file_data))
        logger.info("object_uploaded", object_key=object_key, url=url)

        return UploadResult(
            object_key=object_key,
            url=url,
            content_type=content_type,
            size=len(file_data),
            payload_sha256=headers["x-amz-content-sha256"],
            uploaded_at=timestamp,
        )


# Global uploader instance
_object_uploader: ObjectUploader | None = None


def get_object_uploader() -> ObjectUploader:
    """Get the global object uploader, built from configuration on first use."""
    global _object_uploader
    if _object_uploader is None:
        _object_uploader = ObjectUploader()
    return _object_uploader


def reset_object_uploader() -> None:
    """Drop the global uploader so the next call re-reads configuration."""
    global _object_uploader
    _object_uploader = None
