"""Staging of uploaded files under the upload directory."""
import os
import shutil
import logging
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from src.backend.exceptions import CleanupError
from src.config.settings import UPLOAD_DIR, UPLOAD_FIELD

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Upload:
    """An uploaded file staged on disk for the duration of one request."""
    path: Path
    field_name: str
    size: int
    filename: Optional[str] = None


def write_upload(upload_file: UploadFile, directory: Path, field_name: str = UPLOAD_FIELD) -> Upload:
    """Copy the multipart file into a fresh file under ``directory``.

    Args:
        upload_file: File received by FastAPI
        directory: Upload staging directory, created if missing
        field_name: Form field the file was sent under

    Returns:
        The staged upload
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    staged = tempfile.NamedTemporaryFile(dir=directory, prefix="upload_", delete=False)
    try:
        with staged:
            upload_file.file.seek(0)
            shutil.copyfileobj(upload_file.file, staged)
            size = staged.tell()
    except BaseException:
        os.remove(staged.name)
        raise

    return Upload(
        path=Path(staged.name),
        field_name=field_name,
        size=size,
        filename=upload_file.filename,
    )


def read_upload(upload: Upload) -> bytes:
    """Read the staged file fully into memory."""
    with open(upload.path, "rb") as f:
        return f.read()


def discard_upload(upload: Upload) -> None:
    """Remove the staged file.

    A file that is already gone counts as removed.

    Raises:
        CleanupError: If the file exists but cannot be removed
    """
    try:
        os.remove(upload.path)
    except FileNotFoundError:
        logger.debug(f"Staged upload {upload.path} already removed")
    except OSError as e:
        raise CleanupError(f"Could not remove staged upload {upload.path}: {e}") from e


@asynccontextmanager
async def staged_upload(
    upload_file: UploadFile,
    directory: Path = UPLOAD_DIR,
    field_name: str = UPLOAD_FIELD,
) -> AsyncIterator[Upload]:
    """Stage ``upload_file`` on disk and remove it on every exit path.

    Removal failures are logged and never replace the outcome of the
    request.
    """
    upload = await run_in_threadpool(write_upload, upload_file, directory, field_name)
    logger.info(f"Staged upload '{upload.filename}' ({upload.size} bytes) at {upload.path}")
    try:
        yield upload
    finally:
        try:
            await run_in_threadpool(discard_upload, upload)
        except CleanupError as e:
            logger.error(e.message)
