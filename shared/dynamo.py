from __future__ import annotations
import base64
import json
import logging
import uuid
from typing import Any, Callable, Dict, Iterator, Optional
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError
from .errors import ConflictError, PersistenceError, PersistenceTimeout
from .models import Listing, ListingPage, MediaReference, to_decimal, utc_now_iso

logger = logging.getLogger(__name__)

def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"

def encode_cursor(d: Optional[Dict[str, Any]]) -> Optional[str]:
    if not d: return None
    return base64.urlsafe_b64encode(json.dumps(d).encode()).decode()

def decode_cursor(s: Optional[str]) -> Optional[Dict[str, Any]]:
    if not s: return None
    try:
        return json.loads(base64.urlsafe_b64decode(s.encode()).decode())
    except (ValueError, TypeError):
        return None

class _ConditionFailed(Exception):
    pass

def _is_condition_failure(e: ClientError) -> bool:
    return e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"

def _to_attr(value: Any) -> Any:
    if isinstance(value, MediaReference):
        return value.to_item()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return to_decimal(value)
    return value

class ListingTable:
    """Listings persisted in one DynamoDB table keyed by ``listing_id``."""

    def __init__(self, table):
        self.table = table

    def _call(self, action: str, fn: Callable[..., Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        try:
            return fn(**kwargs)
        except ClientError as e:
            if _is_condition_failure(e):
                raise _ConditionFailed() from e
            raise PersistenceError(f"DynamoDB {action} failed: {e}") from e
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            raise PersistenceTimeout(f"DynamoDB {action} timed out: {e}") from e
        except BotoCoreError as e:
            raise PersistenceError(f"DynamoDB {action} failed: {e}") from e

    def create(self, listing: Listing) -> Listing:
        now = utc_now_iso()
        stored = listing.with_changes(listing_id=new_id("lst"), version=1, created_at=now, updated_at=now)
        try:
            self._call(
                "create",
                self.table.put_item,
                Item=stored.to_item(),
                ConditionExpression="attribute_not_exists(listing_id)",
            )
        except _ConditionFailed as e:
            raise PersistenceError(f"listing id collision on {stored.listing_id}") from e
        return stored

    def find_by_id(self, listing_id: str) -> Optional[Listing]:
        r = self._call("get", self.table.get_item, Key={"listing_id": listing_id}, ConsistentRead=True)
        item = r.get("Item")
        return Listing.from_item(item) if item else None

    def update(
        self,
        listing_id: str,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Listing]:
        """
        Apply a partial update and bump ``version``.

        Returns None when the listing does not exist. With ``expected_version``
        the write only lands if the stored version still matches, otherwise
        ConflictError is raised.
        """
        names: Dict[str, str] = {"#version": "version", "#updated_at": "updated_at"}
        values: Dict[str, Any] = {":one": 1, ":now": utc_now_iso()}
        sets = ["#version = #version + :one", "#updated_at = :now"]
        for i, (attr, value) in enumerate(sorted(changes.items())):
            names[f"#f{i}"] = attr
            values[f":v{i}"] = _to_attr(value)
            sets.append(f"#f{i} = :v{i}")
        condition = "attribute_exists(listing_id)"
        if expected_version is not None:
            condition += " AND #version = :expected"
            values[":expected"] = expected_version
        try:
            r = self._call(
                "update",
                self.table.update_item,
                Key={"listing_id": listing_id},
                UpdateExpression="SET " + ", ".join(sets),
                ConditionExpression=condition,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except _ConditionFailed:
            if expected_version is None or self.find_by_id(listing_id) is None:
                return None
            raise ConflictError(f"listing {listing_id} was modified concurrently")
        return Listing.from_item(r["Attributes"])

    def delete_by_id(self, listing_id: str) -> bool:
        r = self._call("delete", self.table.delete_item, Key={"listing_id": listing_id}, ReturnValues="ALL_OLD")
        return bool(r.get("Attributes"))

    def list_page(self, owner_id: Optional[str] = None, limit: int = 20, cursor: Optional[str] = None) -> ListingPage:
        scan_kwargs: Dict[str, Any] = {"Limit": limit}
        if owner_id:
            scan_kwargs["FilterExpression"] = Attr("owner_id").eq(owner_id)
        start = decode_cursor(cursor)
        if start:
            scan_kwargs["ExclusiveStartKey"] = start
        resp = self._call("scan", self.table.scan, **scan_kwargs)
        items = [Listing.from_item(i) for i in resp.get("Items", [])]
        return ListingPage(items=items, next_page_token=encode_cursor(resp.get("LastEvaluatedKey")))

    def _favorites(self, op: str, listing_id: str, user_id: str) -> Optional[Listing]:
        try:
            r = self._call(
                "favorite",
                self.table.update_item,
                Key={"listing_id": listing_id},
                UpdateExpression=f"{op} favorited_by :u SET updated_at = :now",
                ConditionExpression="attribute_exists(listing_id)",
                ExpressionAttributeValues={":u": {user_id}, ":now": utc_now_iso()},
                ReturnValues="ALL_NEW",
            )
        except _ConditionFailed:
            return None
        return Listing.from_item(r["Attributes"])

    def add_favorite(self, listing_id: str, user_id: str) -> Optional[Listing]:
        return self._favorites("ADD", listing_id, user_id)

    def remove_favorite(self, listing_id: str, user_id: str) -> Optional[Listing]:
        return self._favorites("DELETE", listing_id, user_id)

    def iter_media_ids(self) -> Iterator[str]:
        scan_kwargs: Dict[str, Any] = {
            "ProjectionExpression": "#img",
            "ExpressionAttributeNames": {"#img": "image"},
        }
        while True:
            resp = self._call("scan", self.table.scan, **scan_kwargs)
            for item in resp.get("Items", []):
                media = MediaReference.from_item(item.get("image"))
                if media is not None:
                    yield media.remote_id
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return
            scan_kwargs["ExclusiveStartKey"] = last_key

def listing_table(settings) -> ListingTable:
    from .aws import dynamodb_resource
    return ListingTable(dynamodb_resource(settings).Table(settings.ddb_listings))
