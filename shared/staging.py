"""
Staged uploads.

An uploaded image is written to a temporary file before it is forwarded to
the media store. Only jpg, jpeg and png are accepted. The temporary file is
removed by ``StagedFile.release()``, which is safe to call more than once.
"""
from __future__ import annotations
import logging
import os
import shutil
import tempfile
from contextlib import suppress
from dataclasses import dataclass
from typing import BinaryIO, Optional
from .errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png")
ALLOWED_MIME_TYPES = ("image/jpeg", "image/png")

@dataclass
class StagedFile:
    path: str
    filename: str
    content_type: str
    size: int = 0

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1].lstrip(".").lower()

    def release(self) -> None:
        with suppress(FileNotFoundError):
            os.remove(self.path)
            logger.debug("released staged file %s", self.path)

    def __enter__(self) -> "StagedFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

def check_image(filename: Optional[str], content_type: Optional[str]) -> str:
    name = (filename or "").strip()
    ext = os.path.splitext(name)[1].lstrip(".").lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"unsupported image format '{ext or name}'; allowed: {', '.join(ALLOWED_EXTENSIONS)}"
        )
    ct = (content_type or "").split(";")[0].strip().lower()
    if ct and ct != "application/octet-stream" and ct not in ALLOWED_MIME_TYPES:
        raise ValidationError(f"unsupported content type '{ct}'")
    return ext

def stage_upload(
    fileobj: Optional[BinaryIO],
    filename: Optional[str],
    content_type: Optional[str] = None,
    *,
    required: bool,
    max_bytes: int,
) -> Optional[StagedFile]:
    """
    Copy an incoming upload stream to a temporary file.

    Returns None when no file was sent and ``required`` is False.
    Raises ValidationError for a missing required file, a format outside the
    allow-list, an empty payload or one larger than ``max_bytes``.
    """
    if fileobj is None or not filename:
        if required:
            raise ValidationError("image file is required")
        return None

    ext = check_image(filename, content_type)
    ct = (content_type or "").split(";")[0].strip().lower()
    fd, path = tempfile.mkstemp(prefix="upload_", suffix=f".{ext}")
    staged = StagedFile(
        path=path,
        filename=os.path.basename(filename),
        content_type=ct if ct in ALLOWED_MIME_TYPES else _guess_type(ext),
    )
    try:
        with os.fdopen(fd, "wb") as out:
            shutil.copyfileobj(fileobj, out)
        staged.size = os.path.getsize(path)
        if staged.size == 0:
            raise ValidationError("image file is empty")
        if staged.size > max_bytes:
            raise ValidationError(f"image file exceeds {max_bytes} bytes")
    except BaseException:
        staged.release()
        raise
    return staged

def _guess_type(ext: str) -> str:
    return "image/png" if ext == "png" else "image/jpeg"
