"""
snaptag - Image ingestion and tag search service

A small backend that accepts image uploads and makes them findable by tag:
- Direct upload to S3 with SigV4-signed single-object PUTs
- Baseline tags derived from the filename
- AI tag enrichment through a vision model
- Metadata management with DuckDB
- Filename and tag search with AND semantics across query tokens
"""

__version__ = "0.1.0"
__author__ = "snaptag"
__description__ = "Image ingestion and tag search service"
