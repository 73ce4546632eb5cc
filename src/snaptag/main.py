"""
HTTP server entry point for snaptag.

Runs the FastAPI application under uvicorn.
"""

import uvicorn
from dotenv import load_dotenv

from .config import get_env
from .logging_config import configure_structured_logging, get_logger

logger = get_logger(__name__)


def main() -> None:
    """Main application entry point."""
    load_dotenv()
    configure_structured_logging()

    host = get_env("HOST", "0.0.0.0")  # nosec B104
    port = get_env("PORT", 8000, int)
    logger.info("application_starting", host=host, port=port)

    uvicorn.run("snaptag.api.app:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
