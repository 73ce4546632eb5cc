import os

import structlog
from dotenv import load_dotenv
from invoke import Context, task

from snaptag.logging_config import configure_structured_logging
from snaptag.services.ingestion import get_ingestion_pipeline, shutdown_tagging_executor

logger = structlog.get_logger()

SUPPORTED_EXTENSIONS = [".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif"]


def find_image_files(directory: str, recursive: bool = False) -> list[str]:
    """List image files in ``directory``, sorted by path."""
    image_files = []
    if recursive:
        for root, _, files in os.walk(directory):
            for name in files:
                if os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                    image_files.append(os.path.join(root, name))
    else:
        for name in os.listdir(directory):
            path = os.path.join(directory, name)
            if os.path.isfile(path) and os.path.splitext(name)[1].lower() in SUPPORTED_EXTENSIONS:
                image_files.append(path)
    return sorted(image_files)


@task
def batch_upload(
    c: Context,
    directory: str,
    user_id: str,
    env_file: str = ".env",
    recursive: bool = False,
    dry_run: bool = False,
    token: str = "",
):
    """
    Ingest images from a local directory in batch.

    Each file goes through the full upload, record and tagging pipeline on its
    own; a failure is reported and the batch moves on.

    Args:
        c (Context): Invoke context.
        directory (str): Path to the directory containing images.
        user_id (str): Owner of the new image records.
        env_file (str): Path to the environment file. Default is '.env'.
        recursive (bool): Search for images in subdirectories. Default is False.
        dry_run (bool): If True, lists files to be processed without uploading. Default is False.
        token (str): Bearer token forwarded to a remote tagger, if one is configured.
    """
    if os.path.exists(env_file):
        load_dotenv(dotenv_path=env_file)
    configure_structured_logging()

    if not os.path.isdir(directory):
        logger.error("directory_not_found", directory=directory)
        return

    logger.info("batch_started", directory=directory, user_id=user_id, recursive=recursive, dry_run=dry_run)

    image_files = find_image_files(directory, recursive=recursive)
    if not image_files:
        logger.warning("no_image_files_found", directory=directory)
        return

    if dry_run:
        print("\n--- Dry Run Mode: Files to be processed ---")
        for file_path in image_files:
            print(f"- {file_path}")
        print("--- End of Dry Run ---")
        return

    files = []
    for file_path in image_files:
        with open(file_path, "rb") as f:
            files.append({"filename": os.path.basename(file_path), "data": f.read()})

    pipeline = get_ingestion_pipeline()
    try:
        result = pipeline.ingest_batch(files, user_id, auth_token=token or None)
    finally:
        shutdown_tagging_executor()

    for item in result.results:
        if not item["success"]:
            print(f"FAILED {item['filename']}: {item['error']}")

    print(f"\nBatch upload complete. Successful: {result.successful_uploads}, Failed: {result.failed_uploads}")
