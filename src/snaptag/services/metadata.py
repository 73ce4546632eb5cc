"""
Metadata store for image records.

``MetadataStore`` is the narrow interface the ingestion pipeline and the
search operation depend on. ``DuckDBMetadataStore`` implements it on top of a
single DuckDB database shared by all users; every query is scoped by
``user_id``.

Operations:
- insert(): create a record, assigning id and creation time
- update(): change mutable fields (filename, tags, flags)
- get(): fetch one record by id
- query(): list a user's records newest first, filtered by visibility flags

Only single-record writes are issued, so the store needs no locking beyond
serialising access to its one DuckDB connection.
"""

import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any, Protocol

import duckdb

from ..config import get_database_path
from ..errors import PersistenceError, RecordNotFoundError, SnapTagError, ValidationError
from ..logging_config import get_logger, log_error, log_performance, log_user_action
from ..models.database import DatabaseManager, get_database_manager
from ..models.image import MUTABLE_FIELDS, ImageRecord
from ..models.schema import IMAGE_COLUMNS
from ..utils.tags import normalize_tags

logger = get_logger(__name__)

SELECT_COLUMNS = ", ".join(IMAGE_COLUMNS)
BOOLEAN_FIELDS = ("is_favorite", "hidden", "deleted")


class MetadataStore(Protocol):
    """Durable record of images."""

    def insert(self, user_id: str, filename: str, url: str, tags: list[str]) -> ImageRecord: ...

    def update(self, image_id: str, fields: dict[str, Any]) -> ImageRecord: ...

    def get(self, image_id: str) -> ImageRecord | None: ...

    def query(
        self,
        user_id: str,
        deleted: bool | None = False,
        hidden: bool | None = False,
        favorites_only: bool = False,
    ) -> list[ImageRecord]: ...


def validate_update_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Check and normalize a field update.

    Args:
        fields: Mapping of field name to new value

    Returns:
        dict: Normalized fields (tags cleaned, filename trimmed)

    Raises:
        ValidationError: If a field is unknown, immutable or has a wrong type
    """
    if not fields:
        raise ValidationError("No fields to update", code="empty_update")

    unknown = sorted(set(fields) - MUTABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(unknown)}",
            code="immutable_field",
            details={"fields": unknown},
        )

    normalized: dict[str, Any] = {}
    for name, value in fields.items():
        if name == "filename":
            if not isinstance(value, str) or not value.strip():
                raise ValidationError("Filename must be a non-empty string", code="invalid_filename")
            normalized[name] = value.strip()
        elif name == "tags":
            if isinstance(value, str) or not isinstance(value, Iterable):
                raise ValidationError("Tags must be a list of strings", code="invalid_tags")
            if not all(isinstance(tag, str) for tag in value):
                raise ValidationError("Tags must be a list of strings", code="invalid_tags")
            normalized[name] = normalize_tags(value)
        else:
            if not isinstance(value, bool):
                raise ValidationError(f"Field '{name}' must be a boolean", code="invalid_flag")
            normalized[name] = value
    return normalized


def _to_db_timestamp(value: datetime) -> datetime:
    """DuckDB TIMESTAMP columns hold naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class DuckDBMetadataStore:
    """
    DuckDB-backed implementation of ``MetadataStore``.

    Attributes:
        db_path: Database file path, or ":memory:"
        db_manager: Connection and schema manager
    """

    def __init__(self, db_path: str | None = None, db_manager: DatabaseManager | None = None):
        """
        Open (creating if needed) the image database.

        Args:
            db_path: Path to the DuckDB file (defaults to DATABASE_PATH)
            db_manager: Pre-built manager, mainly for tests

        Raises:
            PersistenceError: If the database cannot be opened
        """
        self.db_path = db_path or get_database_path()
        self._lock = threading.Lock()

        try:
            self.db_manager = db_manager or get_database_manager(self.db_path, create_if_missing=True)
        except Exception as e:
            raise PersistenceError(f"Failed to open metadata database: {e}", original_exception=e) from e

        logger.info("metadata_store_initialized", db_path=self.db_path)

    def _row_to_record(self, row: tuple) -> ImageRecord:
        data = dict(zip(IMAGE_COLUMNS, row, strict=True))
        return ImageRecord.from_dict(data)

    def _execute(self, query: str, parameters: tuple | list | None = None) -> list[tuple]:
        with self._lock:
            return self.db_manager.execute_query(query, parameters)

    def insert(self, user_id: str, filename: str, url: str, tags: list[str]) -> ImageRecord:
        """
        Insert a new visible record.

        Args:
            user_id: Owner of the image
            filename: Display name
            url: Object storage URL
            tags: Initial tags (normalized before storing)

        Returns:
            ImageRecord: The stored record with id and created_at assigned

        Raises:
            ValidationError: If owner, filename or url is empty
            PersistenceError: If the insert fails
        """
        if not user_id or not filename or not url:
            raise ValidationError("user_id, filename and url are required", code="incomplete_record")

        record = ImageRecord.create_new(user_id=user_id, filename=filename, url=url, tags=normalize_tags(tags))

        try:
            self._execute(
                f"""INSERT INTO images ({SELECT_COLUMNS})
                   VALUES (?, ?, ?, ?, ?::VARCHAR[], ?, ?, ?, ?)""",
                (
                    record.id,
                    record.user_id,
                    record.filename,
                    record.url,
                    record.tags,
                    record.is_favorite,
                    record.hidden,
                    record.deleted,
                    _to_db_timestamp(record.created_at),
                ),
            )
        except duckdb.Error as e:
            raise PersistenceError(
                f"Failed to save image metadata: {e}",
                code="insert_failed",
                details={"user_id": user_id, "filename": filename, "url": url},
                original_exception=e,
            ) from e

        log_user_action(user_id, "image_record_created", image_id=record.id, filename=filename, tags=len(record.tags))
        return record

    def get(self, image_id: str) -> ImageRecord | None:
        """
        Get a record by id.

        Raises:
            PersistenceError: If the lookup fails
        """
        try:
            rows = self._execute(f"SELECT {SELECT_COLUMNS} FROM images WHERE id = ?", (image_id,))
        except duckdb.Error as e:
            raise PersistenceError(f"Failed to get image: {e}", original_exception=e) from e

        return self._row_to_record(rows[0]) if rows else None

    def update(self, image_id: str, fields: dict[str, Any]) -> ImageRecord:
        """
        Update mutable fields of a record.

        Args:
            image_id: Record to change
            fields: Subset of filename, tags, is_favorite, hidden, deleted

        Returns:
            ImageRecord: The record after the update

        Raises:
            ValidationError: If fields are invalid or immutable
            RecordNotFoundError: If no record has this id
            PersistenceError: If the update fails
        """
        normalized = validate_update_fields(fields)

        if self.get(image_id) is None:
            raise RecordNotFoundError(image_id)

        assignments = []
        parameters: list[Any] = []
        for name, value in normalized.items():
            assignments.append(f"{name} = ?::VARCHAR[]" if name == "tags" else f"{name} = ?")
            parameters.append(value)
        parameters.append(image_id)

        try:
            self._execute(f"UPDATE images SET {', '.join(assignments)} WHERE id = ?", parameters)
        except duckdb.Error as e:
            raise PersistenceError(
                f"Failed to update image: {e}",
                code="update_failed",
                details={"image_id": image_id, "fields": sorted(normalized)},
                original_exception=e,
            ) from e

        record = self.get(image_id)
        if record is None:
            raise RecordNotFoundError(image_id)

        log_user_action(record.user_id, "image_record_updated", image_id=image_id, fields=sorted(normalized))
        return record

    def query(
        self,
        user_id: str,
        deleted: bool | None = False,
        hidden: bool | None = False,
        favorites_only: bool = False,
    ) -> list[ImageRecord]:
        """
        List a user's records, newest first.

        Args:
            user_id: Owner whose records are listed
            deleted: Required value of the deleted flag, None for any
            hidden: Required value of the hidden flag, None for any
            favorites_only: Only records marked as favorite

        Returns:
            list[ImageRecord]: Matching records ordered by created_at descending

        Raises:
            PersistenceError: If the query fails
        """
        conditions = ["user_id = ?"]
        parameters: list[Any] = [user_id]

        if deleted is not None:
            conditions.append("deleted = ?")
            parameters.append(deleted)
        if hidden is not None:
            conditions.append("hidden = ?")
            parameters.append(hidden)
        if favorites_only:
            conditions.append("is_favorite = TRUE")

        start_time = time.perf_counter()
        try:
            rows = self._execute(
                f"""SELECT {SELECT_COLUMNS} FROM images
                   WHERE {' AND '.join(conditions)}
                   ORDER BY created_at DESC, id""",
                parameters,
            )
        except duckdb.Error as e:
            log_error(e, {"operation": "query_images", "user_id": user_id})
            raise PersistenceError(f"Failed to query images: {e}", original_exception=e) from e

        records = [self._row_to_record(row) for row in rows]
        log_performance("query_images", time.perf_counter() - start_time, user_id=user_id, count=len(records))
        return records

    def close(self) -> None:
        with self._lock:
            self.db_manager.close()


def bulk_update(
    store: MetadataStore,
    image_ids: list[str],
    fields: dict[str, Any],
    user_id: str | None = None,
    max_workers: int = 4,
) -> dict[str, Any]:
    """
    Apply one field update to many records, one independent request per id.

    Every update runs to completion regardless of the others; failures are
    reported in aggregate.

    Args:
        store: Metadata store
        image_ids: Records to update
        fields: Fields applied to each record
        user_id: When set, records owned by someone else count as not found
        max_workers: Upper bound on concurrent updates

    Returns:
        dict: success flag plus total, successful and failed counts

    Raises:
        ValidationError: If the field update itself is invalid
    """
    validate_update_fields(fields)

    if not image_ids:
        return {"success": True, "total": 0, "successful": 0, "failed": 0, "message": "No images to update"}

    def apply(image_id: str) -> bool:
        try:
            if user_id is not None:
                record = store.get(image_id)
                if record is None or record.user_id != user_id:
                    raise RecordNotFoundError(image_id)
            store.update(image_id, fields)
            return True
        except SnapTagError as e:
            logger.warning("bulk_update_item_failed", image_id=image_id, error=str(e))
            return False

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(image_ids)))) as executor:
        outcomes = list(executor.map(apply, image_ids))

    successful = sum(outcomes)
    failed = len(outcomes) - successful
    logger.info("bulk_update_completed", total=len(outcomes), successful=successful, failed=failed)

    return {
        "success": failed == 0,
        "total": len(outcomes),
        "successful": successful,
        "failed": failed,
        "message": f"Updated {successful} of {len(outcomes)} images" + (f", {failed} failed" if failed else ""),
    }


# Global metadata store instance
_metadata_store: DuckDBMetadataStore | None = None


def get_metadata_store() -> DuckDBMetadataStore:
    """Get the global metadata store, opened at DATABASE_PATH on first use."""
    global _metadata_store
    if _metadata_store is None:
        _metadata_store = DuckDBMetadataStore()
    return _metadata_store


def close_metadata_store() -> None:
    """Close and drop the global metadata store."""
    global _metadata_store
    if _metadata_store is not None:
        _metadata_store.close()
        _metadata_store = None
