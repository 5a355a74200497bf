"""Stage uploaded files on local disk while they are being imported."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from fastapi import UploadFile

from sheetstore.core.errors import FileTooLargeError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


async def stage_upload(upload_file: UploadFile, uploads_dir: str | Path, max_bytes: int) -> Path:
    """Copy the upload to ``uploads_dir`` in chunks, enforcing ``max_bytes``."""
    directory = Path(uploads_dir).resolve()
    directory.mkdir(parents=True, exist_ok=True)
    suffix = Path(upload_file.filename or "upload.csv").suffix or ".csv"
    target_path = directory / f"{uuid.uuid4()}{suffix}"

    written = 0
    await upload_file.seek(0)
    try:
        with target_path.open("wb") as destination:
            while chunk := await upload_file.read(CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise FileTooLargeError(max_bytes)
                destination.write(chunk)
    except BaseException:
        discard_staged(target_path)
        raise

    logger.debug(f"Staged {upload_file.filename} ({written} bytes) at {target_path}")
    return target_path


def discard_staged(path: str | Path | None) -> None:
    """Cleanup staged files when imports finish."""
    if path is None:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to delete staged file {path}: {e}")
