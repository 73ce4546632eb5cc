"""HTTP routes for upload, search, tag generation and record maintenance."""

from typing import Any

from fastapi import APIRouter, Body, Depends, File, Header, Query, UploadFile
from pydantic import BaseModel, Field

from ..errors import RecordNotFoundError, SnapTagError, ValidationError
from ..logging_config import get_logger
from ..services.auth import UserInfo, get_auth_service
from ..services.ingestion import IngestionPipeline, get_ingestion_pipeline
from ..services.metadata import MetadataStore, bulk_update, get_metadata_store
from ..services.search import search_images
from ..services.tagger import OpenAIVisionTagger, VisionTagger
from ..utils.tags import parse_tag_string

logger = get_logger(__name__)

router = APIRouter()


class BulkUpdateRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)
    fields: dict[str, Any] = Field(default_factory=dict)


def get_caller(authorization: str | None = Header(default=None)) -> tuple[UserInfo, str]:
    """Resolve the bearer token to (user, token)."""
    return get_auth_service().authenticate(authorization)


def get_store() -> MetadataStore:
    return get_metadata_store()


def get_pipeline() -> IngestionPipeline:
    return get_ingestion_pipeline()


def get_tag_generator() -> VisionTagger:
    # Always the provider-backed tagger: a remote tagger here could point back at this route
    return OpenAIVisionTagger()


@router.post("/upload-image")
def upload_image(
    image: UploadFile | None = File(default=None),
    caller: tuple[UserInfo, str] = Depends(get_caller),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    """Store an uploaded image, record it and tag it."""
    user, token = caller
    if image is None:
        raise ValidationError("No image file provided", code="missing_file")

    file_data = image.file.read()
    result = pipeline.ingest(
        file_data,
        image.filename or "",
        user.user_id,
        auth_token=token,
        content_type=image.content_type,
    )
    return {
        "message": "Upload successful",
        "url": result.url,
        "data": result.record.to_dict(),
        "tagging_status": result.tagging_status.value,
    }


@router.get("/search-images")
def search(
    query: str | None = Query(default=None),
    favorites_only: bool = Query(default=False),
    caller: tuple[UserInfo, str] = Depends(get_caller),
    store: MetadataStore = Depends(get_store),
) -> dict[str, Any]:
    """Search the caller's visible images by filename and tags."""
    user, _ = caller
    if query is None:
        raise ValidationError("Query parameter is required", code="missing_query")

    return search_images(store, user.user_id, query, favorites_only=favorites_only).to_dict()


@router.get("/images")
def list_images(
    favorites_only: bool = Query(default=False),
    caller: tuple[UserInfo, str] = Depends(get_caller),
    store: MetadataStore = Depends(get_store),
) -> dict[str, Any]:
    """List the caller's visible images, newest first."""
    user, _ = caller
    return search_images(store, user.user_id, None, favorites_only=favorites_only).to_dict()


@router.patch("/images/{image_id}")
def update_image(
    image_id: str,
    fields: dict[str, Any] = Body(...),
    caller: tuple[UserInfo, str] = Depends(get_caller),
    store: MetadataStore = Depends(get_store),
) -> dict[str, Any]:
    """Rename, retag, favorite, hide or delete one of the caller's images."""
    user, _ = caller
    record = store.get(image_id)
    if record is None or record.user_id != user.user_id:
        raise RecordNotFoundError(image_id)

    return store.update(image_id, fields).to_dict()


@router.post("/images/bulk-update")
def bulk_update_images(
    request: BulkUpdateRequest,
    caller: tuple[UserInfo, str] = Depends(get_caller),
    store: MetadataStore = Depends(get_store),
) -> dict[str, Any]:
    """Apply the same field update to several of the caller's images."""
    user, _ = caller
    return bulk_update(store, request.ids, request.fields, user_id=user.user_id)


@router.post("/generate-tags")
def generate_tags(
    payload: dict[str, Any] | None = Body(default=None),
    caller: tuple[UserInfo, str] = Depends(get_caller),
    tagger: VisionTagger = Depends(get_tag_generator),
) -> dict[str, Any]:
    """
    Generate tags for an image URL.

    Tagging failures are reported in the body with an empty tag list and a
    200 status, so that callers treating tagging as optional can ignore them.
    """
    _, token = caller
    image_url = (payload or {}).get("imageUrl")
    if not image_url:
        raise ValidationError("Missing imageUrl", code="missing_image_url")

    try:
        tag_string = tagger.tag(image_url, token)
    except SnapTagError as e:
        logger.warning("tag_generation_failed", image_url=image_url, code=e.code, error=str(e))
        return {"error": str(e), "details": e.details, "tags": []}

    tags = parse_tag_string(tag_string)
    logger.info("tags_generated", image_url=image_url, count=len(tags))
    return {"tags": tags}
