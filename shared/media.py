from __future__ import annotations
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Protocol
from .config import Settings
from .models import MediaReference

@dataclass(frozen=True)
class RemoteObject:
    remote_id: str
    created_at: datetime

class MediaStore(Protocol):
    """What the listing manager needs from a remote object store."""

    def upload(self, local_path: str, folder: str) -> MediaReference: ...

    def delete(self, remote_id: str) -> None:
        """Delete by id. An id that no longer exists counts as deleted."""

    def iter_objects(self, folder: str) -> Iterator[RemoteObject]: ...

def new_object_name() -> str:
    return uuid.uuid4().hex

def build_media_store(settings: Settings) -> MediaStore:
    backend = settings.media_backend
    if backend == "s3":
        from .aws import s3_client
        from .s3 import S3MediaStore
        return S3MediaStore(
            s3_client(settings),
            bucket=settings.s3_bucket_media,
            region=settings.aws_region,
            public_base_url=settings.media_public_base_url or None,
        )
    if backend == "cloudinary":
        from .cloudinary_media import CloudinaryMediaStore
        return CloudinaryMediaStore(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            timeout=settings.remote_read_timeout,
        )
    raise ValueError(f"unknown MEDIA_BACKEND '{backend}' (expected 's3' or 'cloudinary')")
