"""Disk staging for multipart image uploads before they reach object storage."""

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)


def save_upload(
    file_obj: BinaryIO,
    original_name: str | None,
    uploads_dir: str | Path,
) -> Path:
    """Persist an uploaded image under ``uploads_dir`` and return the absolute path.

    A partially written file is removed before the error propagates.
    """
    target_dir = Path(uploads_dir).resolve()
    target_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(original_name or "upload").suffix
    target_path = target_dir / f"{uuid.uuid4()}{suffix}"
    file_obj.seek(0)
    try:
        with target_path.open("wb") as destination:
            shutil.copyfileobj(file_obj, destination)
    except OSError:
        target_path.unlink(missing_ok=True)
        raise
    return target_path


def delete_upload(uri: str | Path | None) -> None:
    """Remove a staged file; missing files are ignored."""
    if uri is None:
        return
    path = Path(uri)
    if not path.is_absolute():
        path = path.resolve()
    try:
        if path.exists():
            path.unlink()
            logger.info(f"Cleaned up local file: {path}")
    except OSError as e:
        logger.warning(f"Failed to remove staged file {path}: {e}")
