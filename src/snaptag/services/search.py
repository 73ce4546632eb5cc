"""Filename and tag search over a user's visible images."""

from dataclasses import dataclass
from typing import Any

from ..logging_config import get_logger
from ..models.image import ImageRecord
from .metadata import MetadataStore

logger = get_logger(__name__)


def tokenize_query(query: str) -> list[str]:
    """Lowercase the query and split it on runs of whitespace."""
    return query.lower().split()


@dataclass
class SearchResult:
    """Filtered images in candidate order, with their count."""

    images: list[ImageRecord]
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"images": [image.to_dict() for image in self.images], "count": self.count}


class TagSearchMatcher:
    """
    Boolean matcher: every token must hit, any match kind will do.

    A token hits a record when it is a substring of the lowercased filename,
    a substring of one lowercased tag, or when the whole space-joined query
    occurs in the filename and tags joined with spaces. The last rule lets a
    multi-word query match across a multi-word tag.
    """

    def matches(self, record: ImageRecord, tokens: list[str]) -> bool:
        filename = record.filename.lower()
        tags = [tag.lower() for tag in record.tags]
        all_content = " ".join([filename, *tags])
        phrase = " ".join(tokens)

        for token in tokens:
            if token in filename:
                continue
            if any(token in tag for tag in tags):
                continue
            if phrase in all_content:
                continue
            return False
        return True

    def filter(self, query: str, candidates: list[ImageRecord]) -> SearchResult:
        """
        Keep the candidates matching ``query``, preserving their order.

        A query without tokens matches every candidate.
        """
        tokens = tokenize_query(query)
        matched = [record for record in candidates if self.matches(record, tokens)]
        return SearchResult(images=matched, count=len(matched))


def search_images(
    store: MetadataStore,
    user_id: str,
    query: str | None,
    favorites_only: bool = False,
    matcher: TagSearchMatcher | None = None,
) -> SearchResult:
    """
    Search a user's visible images, newest first.

    Candidates are the user's records that are neither deleted nor hidden.
    A blank query returns every candidate.

    Raises:
        PersistenceError: If the store query fails
    """
    candidates = store.query(user_id, deleted=False, hidden=False, favorites_only=favorites_only)

    if not query or not query.strip():
        return SearchResult(images=candidates, count=len(candidates))

    result = (matcher or TagSearchMatcher()).filter(query, candidates)
    logger.info(
        "images_searched",
        user_id=user_id,
        tokens=tokenize_query(query),
        candidates=len(candidates),
        matches=result.count,
    )
    return result
