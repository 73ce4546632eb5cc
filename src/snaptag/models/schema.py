"""
Database schema definitions for snaptag.

This module contains the SQL schema for the images table.
"""

IMAGES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS images (
    id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    filename TEXT NOT NULL,
    url TEXT NOT NULL,
    tags VARCHAR[],
    is_favorite BOOLEAN NOT NULL DEFAULT FALSE,
    hidden BOOLEAN NOT NULL DEFAULT FALSE,
    deleted BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

IMAGES_TABLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_images_user_id ON images(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_images_user_created ON images(user_id, created_at DESC);",
]

# Column order used by every SELECT in the metadata store
IMAGE_COLUMNS = (
    "id",
    "user_id",
    "filename",
    "url",
    "tags",
    "is_favorite",
    "hidden",
    "deleted",
    "created_at",
)

ALL_SCHEMA_STATEMENTS = [IMAGES_TABLE_SCHEMA] + IMAGES_TABLE_INDEXES


def get_schema_statements() -> list[str]:
    """
    Get all database schema creation statements.

    Returns:
        list of SQL statements to create tables and indexes
    """
    return ALL_SCHEMA_STATEMENTS


def validate_schema_compatibility() -> bool:
    """
    Validate that the schema declares every ImageRecord column.

    Returns:
        True if schema is compatible, False otherwise
    """
    schema_lower = IMAGES_TABLE_SCHEMA.lower()
    return all(column in schema_lower for column in IMAGE_COLUMNS)
