"""
Ingestion pipeline: turn uploaded bytes into a tagged, persisted image record.

Stages, strictly in this order:

1. Uploading        store the bytes as a new object (failure is terminal)
2. BaselineTagging  derive tags from the filename (never fails)
3. Persisting       insert the record (failure is terminal, object remains)
4. AiTagging        ask the vision tagger for tags (best effort)
5. Merging          union AI tags into the record (best effort)

Stages 4 and 5 never raise. They run inline by default, or on a shared
background executor when ``background_tagging`` is enabled, in which case the
caller gets the baseline record back immediately.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config import get_tagging_mode
from ..errors import PersistenceError, SnapTagError, ValidationError
from ..logging_config import get_logger, log_performance, log_user_action
from ..models.image import ImageRecord
from ..utils.tags import derive_baseline_tags, merge_tags, parse_tag_string
from .metadata import MetadataStore, get_metadata_store
from .storage import ObjectUploader, UploadResult, get_object_uploader
from .tagger import VisionTagger, get_vision_tagger

logger = get_logger(__name__)

_tagging_executor: ThreadPoolExecutor | None = None
_tagging_executor_lock = threading.Lock()


def get_tagging_executor() -> ThreadPoolExecutor:
    """
    Get or create the shared executor used for background tagging.

    A small fixed pool keeps a burst of uploads from opening an unbounded
    number of provider connections.
    """
    global _tagging_executor
    if _tagging_executor is None:
        with _tagging_executor_lock:
            if _tagging_executor is None:
                _tagging_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="vision-tagging")
    return _tagging_executor


def shutdown_tagging_executor() -> None:
    """Wait for pending tagging jobs and release the executor."""
    global _tagging_executor
    if _tagging_executor is not None:
        with _tagging_executor_lock:
            if _tagging_executor is not None:
                _tagging_executor.shutdown(wait=True)
                _tagging_executor = None


class TaggingStatus(str, Enum):
    """How far tag enrichment got for an ingested image."""

    ENRICHED = "enriched"
    BASELINE_ONLY = "baseline_only"
    PENDING = "pending"


@dataclass
class IngestionResult:
    """A completed ingestion."""

    record: ImageRecord
    upload: UploadResult
    baseline_tags: list[str]
    tagging_status: TaggingStatus
    tagging_future: Future | None = field(default=None, repr=False, compare=False)

    @property
    def url(self) -> str:
        return self.upload.url

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "object_key": self.upload.object_key,
            "record": self.record.to_dict(),
            "baseline_tags": list(self.baseline_tags),
            "tagging_status": self.tagging_status.value,
        }


@dataclass
class BatchIngestionResult:
    """Aggregate outcome of ingesting several files independently."""

    total_files: int
    successful_uploads: int
    failed_uploads: int
    results: list[dict[str, Any]]

    @property
    def success(self) -> bool:
        return self.failed_uploads == 0

    @property
    def message(self) -> str:
        return f"Processed {self.total_files} files: {self.successful_uploads} successful, {self.failed_uploads} failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "total_files": self.total_files,
            "successful_uploads": self.successful_uploads,
            "failed_uploads": self.failed_uploads,
            "results": self.results,
            "message": self.message,
        }


class IngestionPipeline:
    """Sequences upload, persistence and tagging for one file at a time."""

    def __init__(
        self,
        uploader: ObjectUploader,
        store: MetadataStore,
        tagger: VisionTagger,
        background_tagging: bool = False,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        """
        Args:
            uploader: Stores the object bytes
            store: Persists image records
            tagger: Produces AI tags for a stored object
            background_tagging: Run stages 4-5 after returning instead of inline
            executor: Executor for background tagging (defaults to the shared one)
        """
        self.uploader = uploader
        self.store = store
        self.tagger = tagger
        self.background_tagging = background_tagging
        self._executor = executor

    def ingest(
        self,
        file_data: bytes,
        filename: str,
        user_id: str,
        auth_token: str | None = None,
        content_type: str | None = None,
    ) -> IngestionResult:
        """
        Run the pipeline for one file.

        Args:
            file_data: Raw file bytes
            filename: Original filename (display name and key source)
            user_id: Owner of the new record
            auth_token: Caller's token, forwarded unchanged to the tagger
            content_type: MIME type of the file, if known

        Returns:
            IngestionResult: Persisted record and tagging outcome

        Raises:
            ValidationError: If file data, filename or owner is missing
            ConfigurationError: If storage credentials are missing
            TransportError: If storage is unreachable
            UploadRejectedError: If storage rejects the PUT
            PersistenceError: If the record could not be saved after the upload
        """
        if file_data is None:
            raise ValidationError("No image file provided", code="missing_file")
        if len(file_data) == 0:
            raise ValidationError("Uploaded file is empty", code="empty_file")
        if not filename or not filename.strip():
            raise ValidationError("Filename is required", code="missing_filename")
        if not user_id:
            raise ValidationError("Owner is required", code="missing_owner")

        start_time = time.perf_counter()
        log = logger.bind(filename=filename, user_id=user_id)
        log.info("ingestion_started", size=len(file_data))

        # Stage 1: errors propagate, nothing has been persisted yet
        upload = self.uploader.upload(file_data, filename, content_type)

        # Stage 2
        baseline_tags = derive_baseline_tags(filename)

        # Stage 3
        try:
            record = self.store.insert(user_id, filename, upload.url, baseline_tags)
        except Exception as e:
            log.error("orphaned_object", object_key=upload.object_key, url=upload.url, error=str(e))
            raise PersistenceError(
                f"Image was stored but its metadata could not be saved: {e}",
                code="metadata_not_saved",
                details={"object_key": upload.object_key, "object_url": upload.url},
                original_exception=e,
            ) from e

        log_user_action(user_id, "image_uploaded", image_id=record.id, object_key=upload.object_key)

        # Stages 4-5
        tagging_future: Future | None = None
        if self.background_tagging:
            executor = self._executor or get_tagging_executor()
            tagging_future = executor.submit(self.enrich_tags, record, auth_token)
            status = TaggingStatus.PENDING
        else:
            status, record = self.enrich_tags(record, auth_token)

        log_performance("ingestion", time.perf_counter() - start_time, filename=filename, tagging_status=status.value)
        log.info("ingestion_completed", image_id=record.id, tagging_status=status.value)

        return IngestionResult(
            record=record,
            upload=upload,
            baseline_tags=baseline_tags,
            tagging_status=status,
            tagging_future=tagging_future,
        )

    def enrich_tags(self, record: ImageRecord, auth_token: str | None = None) -> tuple[TaggingStatus, ImageRecord]:
        """
        Stages 4 and 5. Never raises.

        Returns:
            tuple: (tagging status, record as it now stands in the store)
        """
        log = logger.bind(image_id=record.id, url=record.url)

        try:
            tag_string = self.tagger.tag(record.url, auth_token)
        except Exception as e:
            log.warning("ai_tagging_failed_non_critical", error=str(e), error_type=type(e).__name__)
            return TaggingStatus.BASELINE_ONLY, record

        ai_tags = parse_tag_string(tag_string)
        if not ai_tags:
            log.info("ai_tagging_returned_no_tags")
            return TaggingStatus.BASELINE_ONLY, record

        merged = merge_tags(record.tags, ai_tags)
        try:
            updated = self.store.update(record.id, {"tags": merged})
        except Exception as e:
            log.warning("ai_tag_merge_failed_non_critical", error=str(e), ai_tags=ai_tags)
            return TaggingStatus.BASELINE_ONLY, record

        log.info("ai_tags_merged", baseline=len(record.tags), ai=len(ai_tags), merged=len(updated.tags))
        return TaggingStatus.ENRICHED, updated

    def ingest_batch(
        self, files: list[dict[str, Any]], user_id: str, auth_token: str | None = None
    ) -> BatchIngestionResult:
        """
        Ingest several files; each one succeeds or fails on its own.

        Args:
            files: Dicts with "filename", "data" and optional "content_type"
            user_id: Owner of the new records
            auth_token: Caller's token, forwarded to the tagger

        Returns:
            BatchIngestionResult: Counts and one result dict per file
        """
        logger.info("batch_ingestion_started", total_files=len(files), user_id=user_id)
        results = []
        successful = 0

        for file_info in files:
            filename = file_info.get("filename", "")
            try:
                result = self.ingest(
                    file_info.get("data", b""),
                    filename,
                    user_id,
                    auth_token=auth_token,
                    content_type=file_info.get("content_type"),
                )
            except SnapTagError as e:
                results.append({"success": False, "filename": filename, "error": str(e), "code": e.code})
                continue

            successful += 1
            results.append(
                {
                    "success": True,
                    "filename": filename,
                    "url": result.url,
                    "image_id": result.record.id,
                    "tagging_status": result.tagging_status.value,
                }
            )

        batch = BatchIngestionResult(
            total_files=len(files),
            successful_uploads=successful,
            failed_uploads=len(files) - successful,
            results=results,
        )
        logger.info(
            "batch_ingestion_completed",
            total_files=batch.total_files,
            successful=batch.successful_uploads,
            failed=batch.failed_uploads,
        )
        return batch


def get_ingestion_pipeline() -> IngestionPipeline:
    """Build a pipeline from the global services and TAGGING_MODE."""
    return IngestionPipeline(
        uploader=get_object_uploader(),
        store=get_metadata_store(),
        tagger=get_vision_tagger(),
        background_tagging=get_tagging_mode() == "background",
    )
