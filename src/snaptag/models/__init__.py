"""
Models module for snaptag.

This module contains data models and schemas:
- ImageRecord: Data class for an uploaded image
- Database schema and table definitions
- DatabaseManager: Database connection and schema management
"""

from .database import DatabaseManager, create_database, get_database_manager
from .image import MUTABLE_FIELDS, ImageRecord
from .schema import get_schema_statements, validate_schema_compatibility

__all__ = [
    "ImageRecord",
    "MUTABLE_FIELDS",
    "DatabaseManager",
    "create_database",
    "get_database_manager",
    "get_schema_statements",
    "validate_schema_compatibility",
]
