"""
Image record model for snaptag.

This module contains the ImageRecord dataclass that represents an uploaded
image as stored in the metadata store.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# Fields a caller may change after creation
MUTABLE_FIELDS = frozenset({"filename", "tags", "is_favorite", "hidden", "deleted"})


@dataclass
class ImageRecord:
    """
    Represents one uploaded image.

    ``url`` points at the stored object and never changes; ``filename`` is the
    display name and may be renamed. ``tags`` holds lowercase, trimmed,
    deduplicated strings.
    """

    id: str
    user_id: str
    filename: str
    url: str
    tags: list[str] = field(default_factory=list)
    is_favorite: bool = False
    hidden: bool = False
    deleted: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create_new(cls, user_id: str, filename: str, url: str, tags: list[str] | None = None) -> "ImageRecord":
        """
        Create a new ImageRecord with generated ID and current timestamp.

        Args:
            user_id: Owner of the image
            filename: Display name of the image
            url: Object storage URL
            tags: Initial tags

        Returns:
            New ImageRecord instance with default visibility flags
        """
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            filename=filename,
            url=url,
            tags=list(tags or []),
            created_at=datetime.now(UTC),
        )

    @property
    def is_visible(self) -> bool:
        """Visible records are neither hidden nor deleted."""
        return not self.hidden and not self.deleted

    @property
    def object_key(self) -> str:
        """Storage object key, the last path segment of the URL."""
        return self.url.rsplit("/", 1)[-1]

    def to_dict(self) -> dict[str, Any]:
        """
        Convert ImageRecord to a JSON-serialisable dictionary.

        Returns:
            Dictionary representation of the record
        """
        return {
            "id": self.id,
            "user_id": self.user_id,
            "filename": self.filename,
            "url": self.url,
            "tags": list(self.tags),
            "is_favorite": self.is_favorite,
            "hidden": self.hidden,
            "deleted": self.deleted,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageRecord":
        """
        Create ImageRecord from dictionary (e.g., from the database).

        Args:
            data: Dictionary containing record fields

        Returns:
            ImageRecord instance
        """
        created_at = data["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)

        return cls(
            id=data["id"],
            user_id=data["user_id"],
            filename=data["filename"],
            url=data["url"],
            tags=list(data.get("tags") or []),
            is_favorite=bool(data.get("is_favorite", False)),
            hidden=bool(data.get("hidden", False)),
            deleted=bool(data.get("deleted", False)),
            created_at=created_at,
        )
