from __future__ import annotations
import logging
import mimetypes
import os
from typing import Iterator, Optional
from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError
from .errors import RemoteStoreError, RemoteStoreTimeout
from .media import RemoteObject, new_object_name
from .models import MediaReference

logger = logging.getLogger(__name__)

_MISSING_CODES = ("NoSuchKey", "404", "NotFound")

def _translate(action: str, exc: Exception) -> RemoteStoreError:
    if isinstance(exc, (ConnectTimeoutError, ReadTimeoutError)):
        return RemoteStoreTimeout(f"S3 {action} timed out: {exc}")
    return RemoteStoreError(f"S3 {action} failed: {exc}")

class S3MediaStore:
    """Listing images stored as objects in a single bucket. The object key is the remote id."""

    def __init__(self, client, bucket: str, region: str, public_base_url: Optional[str] = None):
        self.client = client
        self.bucket = bucket
        self.region = region
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload(self, local_path: str, folder: str) -> MediaReference:
        ext = os.path.splitext(local_path)[1].lower()
        key = f"{folder.strip('/')}/{new_object_name()}{ext}"
        ct = mimetypes.guess_type(local_path)[0] or "application/octet-stream"
        try:
            with open(local_path, "rb") as body:
                self.client.put_object(Bucket=self.bucket, Key=key, Body=body, ContentType=ct)
        except (BotoCoreError, ClientError) as e:
            raise _translate("upload", e) from e
        logger.info("uploaded s3://%s/%s", self.bucket, key)
        return MediaReference(remote_url=self.public_url(key), remote_id=key)

    def delete(self, remote_id: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=remote_id)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                logger.info("s3://%s/%s already gone", self.bucket, remote_id)
                return
            raise _translate("delete", e) from e
        except BotoCoreError as e:
            raise _translate("delete", e) from e
        logger.info("deleted s3://%s/%s", self.bucket, remote_id)

    def iter_objects(self, folder: str) -> Iterator[RemoteObject]:
        prefix = f"{folder.strip('/')}/"
        try:
            for page in self.client.get_paginator("list_objects_v2").paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield RemoteObject(remote_id=obj["Key"], created_at=obj["LastModified"])
        except (BotoCoreError, ClientError) as e:
            raise _translate("list", e) from e

