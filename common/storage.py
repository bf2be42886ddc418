"""Disk storage for equipment listing images."""
from __future__ import annotations

import logging
import random
import time
from pathlib import Path
from typing import Iterable, List, Sequence

from fastapi import UploadFile

from .config import get_settings
from .errors import ValidationFailed

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads/"
_CHUNK_SIZE = 64 * 1024


def upload_root() -> Path:
    root = Path(get_settings().upload_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


def _extension(upload: UploadFile) -> str:
    return Path(upload.filename or "").suffix.lower().lstrip(".")


def validate_image(upload: UploadFile) -> str:
    """Return the normalized extension, or raise if the file is not an allowed image."""

    allowed = {ext.lower() for ext in get_settings().allowed_image_extensions}
    extension = _extension(upload)
    mime_subtype = (upload.content_type or "").lower().rpartition("/")[2]
    if extension not in allowed or mime_subtype not in allowed:
        raise ValidationFailed(f"Only image files are allowed ({', '.join(sorted(allowed))})")
    return extension


def _unique_name(extension: str) -> str:
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"equipment-{suffix}.{extension}"


def _write_capped(upload: UploadFile, target: Path, max_bytes: int) -> None:
    written = 0
    with target.open("wb") as buffer:
        while chunk := upload.file.read(_CHUNK_SIZE):
            written += len(chunk)
            if written > max_bytes:
                break
            buffer.write(chunk)
    if written > max_bytes:
        target.unlink(missing_ok=True)
        raise ValidationFailed(f"Image '{upload.filename}' exceeds the {max_bytes // (1024 * 1024)}MB limit")


def save_images(uploads: Sequence[UploadFile]) -> List[str]:
    """Persist uploaded images and return their public paths.

    Either every file is stored or none is: a failure part-way through removes
    the files already written.
    """
    settings = get_settings()
    files = [upload for upload in uploads if upload.filename]
    if len(files) > settings.max_images_per_listing_upload:
        raise ValidationFailed(f"At most {settings.max_images_per_listing_upload} images can be uploaded at once")

    extensions = [validate_image(upload) for upload in files]
    root = upload_root()
    saved: List[str] = []
    try:
        for upload, extension in zip(files, extensions):
            name = _unique_name(extension)
            _write_capped(upload, root / name, settings.max_upload_size_bytes)
            saved.append(PUBLIC_PREFIX + name)
    except Exception:
        delete_images(saved)
        raise
    finally:
        for upload in files:
            upload.file.close()
    return saved


def delete_images(paths: Iterable[str]) -> None:
    root = upload_root()
    for public_path in paths:
        # Only the basename is trusted; stored paths never point outside upload_dir.
        name = Path(public_path).name
        if not name:
            continue
        try:
            (root / name).unlink(missing_ok=True)
        except OSError:
            logger.exception("Could not remove image %s", name)
