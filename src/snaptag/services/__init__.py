"""
Services module for snaptag.

This module contains the service classes that hold the business logic:
- ObjectUploader: SigV4-signed uploads to S3
- DuckDBMetadataStore: DuckDB image records
- OpenAIVisionTagger / HttpVisionTagger: AI tag generation
- IngestionPipeline: upload, persist and tag sequencing
- TagSearchMatcher: filename and tag search
- TokenAuthService: bearer token authentication
"""

from .auth import TokenAuthService, UserInfo, get_auth_service
from .ingestion import BatchIngestionResult, IngestionPipeline, IngestionResult, TaggingStatus, get_ingestion_pipeline
from .metadata import DuckDBMetadataStore, MetadataStore, bulk_update, get_metadata_store
from .search import SearchResult, TagSearchMatcher, search_images
from .signer import Signer
from .storage import ObjectUploader, UploadResult, get_object_uploader
from .tagger import HttpVisionTagger, OpenAIVisionTagger, VisionTagger, get_vision_tagger

__all__ = [
    "TokenAuthService",
    "UserInfo",
    "get_auth_service",
    "IngestionPipeline",
    "IngestionResult",
    "BatchIngestionResult",
    "TaggingStatus",
    "get_ingestion_pipeline",
    "MetadataStore",
    "DuckDBMetadataStore",
    "bulk_update",
    "get_metadata_store",
    "SearchResult",
    "TagSearchMatcher",
    "search_images",
    "Signer",
    "ObjectUploader",
    "UploadResult",
    "get_object_uploader",
    "HttpVisionTagger",
    "OpenAIVisionTagger",
    "VisionTagger",
    "get_vision_tagger",
]
