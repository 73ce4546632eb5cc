"""
Health check functionality for snaptag.

Checks cover the metadata database and the configuration of object storage
and the vision tagger. No check performs a network call: a storage probe
would need a signed request beyond the single PUT the uploader issues.
"""

import platform
import time
from typing import Any

from . import __version__
from .config import get_database_path, get_environment, get_storage_settings, get_tagger_settings, get_tagging_mode
from .errors import get_error_handler
from .logging_config import get_logger
from .services.metadata import get_metadata_store

logger = get_logger(__name__)

APP_START_TIME = time.time()


def check_database_health() -> dict[str, Any]:
    """Check that the metadata database is reachable and its schema is intact."""
    try:
        store = get_metadata_store()
        if not store.db_manager.verify_schema():
            return {
                "status": "unhealthy",
                "message": "Database schema verification failed",
                "timestamp": time.time(),
                "db_path": get_database_path(),
            }

        return {
            "status": "healthy",
            "message": "Database connection successful",
            "timestamp": time.time(),
            "db_path": get_database_path(),
        }
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "message": f"Database connection failed: {str(e)}", "timestamp": time.time()}


def check_storage_health() -> dict[str, Any]:
    """Check that object storage credentials and bucket are configured."""
    settings = get_storage_settings()
    missing = settings.missing_fields()

    if missing:
        return {
            "status": "unhealthy",
            "message": f"Missing storage configuration: {', '.join(missing)}",
            "timestamp": time.time(),
            "missing_vars": missing,
        }

    return {
        "status": "healthy",
        "message": f"Storage configured for bucket: {settings.bucket}",
        "timestamp": time.time(),
        "bucket": settings.bucket,
        "region": settings.region,
    }


def check_tagger_health() -> dict[str, Any]:
    """
    Check that a vision tagger is configured.

    A missing tagger only degrades uploads to baseline tags, so it is
    reported as "degraded" rather than "unhealthy".
    """
    settings = get_tagger_settings()

    if settings.tagger_url:
        backend = {"backend": "http", "endpoint": settings.tagger_url}
    elif settings.openai_api_key:
        backend = {"backend": "openai", "model": settings.model}
    else:
        return {
            "status": "degraded",
            "message": "No vision tagger configured; uploads keep baseline tags only",
            "timestamp": time.time(),
        }

    return {
        "status": "healthy",
        "message": "Vision tagger configured",
        "timestamp": time.time(),
        "tagging_mode": get_tagging_mode(),
        **backend,
    }


def get_application_info() -> dict[str, Any]:
    """Get application information."""
    return {
        "name": "snaptag",
        "version": __version__,
        "environment": get_environment(),
        "timestamp": time.time(),
        "uptime": time.time() - APP_START_TIME,
        "python_version": platform.python_version(),
        "platform": platform.system(),
        "error_counts": get_error_handler().get_error_statistics(),
    }


def perform_health_check() -> dict[str, Any]:
    """Perform comprehensive health check."""
    logger.info("health_check_started")

    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "storage": check_storage_health(),
        "tagger": check_tagger_health(),
    }

    unhealthy_services = [service for service, result in checks.items() if result["status"] == "unhealthy"]
    overall_status = "unhealthy" if unhealthy_services else "healthy"

    health_response = {
        "status": overall_status,
        "timestamp": time.time(),
        "duration_ms": round((time.time() - start_time) * 1000, 2),
        "application": get_application_info(),
        "checks": checks,
    }

    if unhealthy_services:
        health_response["unhealthy_services"] = unhealthy_services

    logger.info(
        "health_check_completed",
        status=overall_status,
        duration_ms=health_response["duration_ms"],
        unhealthy_services=unhealthy_services,
    )

    return health_response
