from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from shared.dynamo import decode_cursor, encode_cursor, new_id
from shared.errors import ConflictError, PersistenceError, RemoteStoreError
from shared.media import RemoteObject
from shared.models import Listing, ListingPage, MediaReference, utc_now_iso
from shared.staging import StagedFile
from listings.manager import ListingMediaManager


class FakeMediaStore:
    """In-memory media store that records every call."""

    def __init__(self):
        self.objects: Dict[str, RemoteObject] = {}
        self.uploads: List[str] = []
        self.deletes: List[str] = []
        self.next_refs: List[MediaReference] = []
        self.fail_upload: Optional[Exception] = None
        self.fail_delete: Optional[Exception] = None

    @property
    def calls(self) -> int:
        return len(self.uploads) + len(self.deletes)

    def upload(self, local_path: str, folder: str) -> MediaReference:
        self.uploads.append(local_path)
        if self.fail_upload:
            raise self.fail_upload
        if self.next_refs:
            ref = self.next_refs.pop(0)
        else:
            rid = f"{folder}/{uuid.uuid4().hex[:8]}"
            ref = MediaReference(remote_url=f"https://cdn.example/{rid}.jpg", remote_id=rid)
        self.objects[ref.remote_id] = RemoteObject(ref.remote_id, datetime.now(timezone.utc))
        return ref

    def delete(self, remote_id: str) -> None:
        self.deletes.append(remote_id)
        if self.fail_delete:
            raise self.fail_delete
        self.objects.pop(remote_id, None)

    def iter_objects(self, folder: str):
        return iter(list(self.objects.values()))


class FakeListingTable:
    """In-memory listing table with the same version semantics as DynamoDB."""

    def __init__(self):
        self.items: Dict[str, Listing] = {}
        self.calls: List[str] = []
        self.fail_create: Optional[Exception] = None
        self.fail_update: Optional[Exception] = None

    def create(self, listing: Listing) -> Listing:
        self.calls.append("create")
        if self.fail_create:
            raise self.fail_create
        now = utc_now_iso()
        stored = listing.with_changes(listing_id=new_id("lst"), version=1, created_at=now, updated_at=now)
        self.items[stored.listing_id] = stored
        return stored

    def find_by_id(self, listing_id: str) -> Optional[Listing]:
        self.calls.append("find")
        return self.items.get(listing_id)

    def update(self, listing_id, changes, expected_version=None):
        self.calls.append("update")
        if self.fail_update:
            raise self.fail_update
        current = self.items.get(listing_id)
        if current is None:
            return None
        if expected_version is not None and current.version != expected_version:
            raise ConflictError(f"listing {listing_id} was modified concurrently")
        updated = current.with_changes(version=current.version + 1, updated_at=utc_now_iso(), **changes)
        self.items[listing_id] = updated
        return updated

    def delete_by_id(self, listing_id: str) -> bool:
        self.calls.append("delete")
        return self.items.pop(listing_id, None) is not None

    def list_page(self, owner_id=None, limit=20, cursor=None) -> ListingPage:
        ids = sorted(i for i, l in self.items.items() if owner_id is None or l.owner_id == owner_id)
        start = decode_cursor(cursor)
        if start:
            ids = [i for i in ids if i > start["listing_id"]]
        page = ids[:limit]
        last = {"listing_id": page[-1]} if len(ids) > limit else None
        return ListingPage(items=[self.items[i] for i in page], next_page_token=encode_cursor(last))

    def _favorites(self, listing_id, fn):
        current = self.items.get(listing_id)
        if current is None:
            return None
        updated = current.with_changes(favorited_by=frozenset(fn(set(current.favorited_by))))
        self.items[listing_id] = updated
        return updated

    def add_favorite(self, listing_id, user_id):
        return self._favorites(listing_id, lambda s: s | {user_id})

    def remove_favorite(self, listing_id, user_id):
        return self._favorites(listing_id, lambda s: s - {user_id})

    def iter_media_ids(self):
        return (l.image.remote_id for l in self.items.values() if l.image is not None)


@pytest.fixture(autouse=True)
def aws_env(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-west-2")


@pytest.fixture
def store():
    return FakeMediaStore()


@pytest.fixture
def table():
    return FakeListingTable()


@pytest.fixture
def manager(store, table):
    return ListingMediaManager(store=store, table=table, folder="listings")


@pytest.fixture
def make_staged(tmp_path):
    def _make(name: str = "house.jpg", content: bytes = b"\xff\xd8\xff fake jpeg") -> StagedFile:
        path = tmp_path / f"{uuid.uuid4().hex}_{name}"
        path.write_bytes(content)
        return StagedFile(path=str(path), filename=name, content_type="image/jpeg", size=len(content))
    return _make


@pytest.fixture
def remote_error():
    return RemoteStoreError("upload rejected")


@pytest.fixture
def db_error():
    return PersistenceError("table unavailable")
