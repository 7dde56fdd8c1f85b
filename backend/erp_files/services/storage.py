"""
Local-disk storage for uploaded binaries.

The handlers only record metadata; this module puts the bytes on disk first
and hands back where they went.
"""

import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from erp_files.core.config import get_settings
from erp_files.core.errors import PayloadTooLarge

logger = logging.getLogger("erp.storage")

_CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    path: str
    mimetype: str
    size: int
    original_name: str


def _unique_name(original: Optional[str]) -> str:
    ext = Path(original or "").suffix.lower()
    # Keep extensions sane; anything odd is dropped rather than trusted
    if len(ext) > 16 or not ext[1:].isalnum():
        ext = ""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}{ext}"


def store_upload(upload: UploadFile) -> StoredFile:
    """Stream `upload` into the upload directory, enforcing the size limit."""
    settings = get_settings()
    target_dir = Path(settings.upload_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / _unique_name(upload.filename)

    size = 0
    try:
        with open(target, "wb") as out:
            while True:
                chunk = upload.file.read(_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > settings.upload_max_bytes:
                    raise PayloadTooLarge(f"File too large (max {settings.upload_max_bytes} bytes)")
                out.write(chunk)
    except Exception:
        remove_stored_file(str(target))
        raise

    logger.info("stored upload name=%s path=%s size=%d", upload.filename, target, size)
    return StoredFile(
        path=str(target),
        mimetype=upload.content_type or "application/octet-stream",
        size=size,
        original_name=upload.filename or target.name,
    )


def remove_stored_file(path: str) -> bool:
    """
    Best-effort unlink. Returns False (and logs) instead of raising, so a
    missing or locked file never fails the surrounding request.
    """
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        logger.warning("stored file already gone: %s", path)
        return False
    except OSError:
        logger.exception("Failed to delete file from filesystem: %s", path)
        return False
