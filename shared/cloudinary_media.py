from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterator
import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader
from urllib3.exceptions import TimeoutError as Urllib3Timeout
from .errors import RemoteStoreError, RemoteStoreTimeout
from .media import RemoteObject
from .models import MediaReference

logger = logging.getLogger(__name__)

def _timed_out(exc: BaseException) -> bool:
    # The SDK re-raises transport errors as its own type; the urllib3 cause stays on the chain.
    seen = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        if isinstance(cur, (Urllib3Timeout, TimeoutError)):
            return True
        seen.add(id(cur))
        cur = cur.__cause__ or cur.__context__
    return False

def _translate(action: str, exc: Exception) -> RemoteStoreError:
    if _timed_out(exc):
        return RemoteStoreTimeout(f"Cloudinary {action} timed out: {exc}")
    return RemoteStoreError(f"Cloudinary {action} failed: {exc}")

def _parse_created_at(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)

class CloudinaryMediaStore:
    """
    Listing images stored in Cloudinary. The public id is the remote id.

    Credentials are passed on every call instead of through the global
    ``cloudinary.config()`` so several stores can coexist in one process.
    """

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, timeout: float = 30):
        if not (cloud_name and api_key and api_secret):
            raise ValueError("Cloudinary credentials are not configured")
        self.cloud_name = cloud_name
        self.timeout = timeout
        self._auth: Dict[str, Any] = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
        }

    def upload(self, local_path: str, folder: str) -> MediaReference:
        try:
            result = cloudinary.uploader.upload(
                local_path,
                folder=folder,
                resource_type="image",
                timeout=self.timeout,
                **self._auth,
            )
        except (cloudinary.exceptions.Error, OSError) as e:
            raise _translate("upload", e) from e
        logger.info("uploaded cloudinary:%s", result["public_id"])
        return MediaReference(remote_url=result["secure_url"], remote_id=result["public_id"])

    def delete(self, remote_id: str) -> None:
        try:
            result = cloudinary.uploader.destroy(
                remote_id, invalidate=True, timeout=self.timeout, **self._auth
            )
        except cloudinary.exceptions.NotFound:
            logger.info("cloudinary:%s already gone", remote_id)
            return
        except (cloudinary.exceptions.Error, OSError) as e:
            raise _translate("delete", e) from e
        status = (result or {}).get("result")
        if status == "not found":
            logger.info("cloudinary:%s already gone", remote_id)
        elif status != "ok":
            raise RemoteStoreError(f"Cloudinary delete of {remote_id} returned {status!r}")
        else:
            logger.info("deleted cloudinary:%s", remote_id)

    def iter_objects(self, folder: str) -> Iterator[RemoteObject]:
        cursor = None
        while True:
            params: Dict[str, Any] = {
                "type": "upload",
                "resource_type": "image",
                "prefix": f"{folder.strip('/')}/",
                "max_results": 500,
                **self._auth,
            }
            if cursor:
                params["next_cursor"] = cursor
            try:
                page = cloudinary.api.resources(**params)
            except (cloudinary.exceptions.Error, OSError) as e:
                raise _translate("list", e) from e
            for res in page.get("resources", []):
                yield RemoteObject(remote_id=res["public_id"], created_at=_parse_created_at(res["created_at"]))
            cursor = page.get("next_cursor")
            if not cursor:
                return
