"""FastAPI application exposing the snaptag operations over HTTP."""

from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import PersistenceError, SnapTagError, UploadRejectedError, handle_error
from ..health import perform_health_check
from ..logging_config import configure_structured_logging, get_logger
from ..services.ingestion import shutdown_tagging_executor
from ..services.metadata import close_metadata_store, get_metadata_store
from .routes import router

load_dotenv()  # Load environment variables from .env file if present

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Open the metadata store on startup; on shutdown, drain background
    tagging before closing the store it writes to.
    """
    configure_structured_logging()
    get_metadata_store()
    logger.info("application_started")

    try:
        yield
    finally:
        shutdown_tagging_executor()
        close_metadata_store()
        logger.info("application_stopped")


def error_response(error: SnapTagError) -> dict[str, Any]:
    """Response body for a classified error."""
    if isinstance(error, UploadRejectedError):
        return {"error": "Failed to upload to storage", "status": error.status_code, "details": error.body}

    body: dict[str, Any] = {"error": str(error), "code": error.code}
    if isinstance(error, PersistenceError) and "object_url" in error.details:
        body["error"] = "Failed to save image metadata"
        body["details"] = str(error)
        body["url"] = error.details["object_url"]
    elif error.details:
        body["details"] = error.details
    return body


async def snaptag_error_handler(request: Request, exc: SnapTagError) -> JSONResponse:
    logger.info("request_failed", path=request.url.path, code=exc.code, status=exc.http_status)
    return JSONResponse(status_code=exc.http_status, content=error_response(exc))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error_info = handle_error(exc, {"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": error_info.message},
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(title="snaptag", lifespan=lifespan)

    app.add_exception_handler(SnapTagError, snaptag_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.get("/health")
    def health() -> JSONResponse:
        """Component health; 503 when any check fails."""
        health_data = perform_health_check()
        status_code = 200 if health_data["status"] == "healthy" else 503
        return JSONResponse(status_code=status_code, content=health_data)

    app.include_router(router)

    return app


app = create_app()
