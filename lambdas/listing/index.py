from __future__ import annotations
import json, logging
from decimal import Decimal
from typing import Any, Dict, Optional
from shared.config import settings
from shared.errors import NotFoundError, error_body, status_for
from listings.manager import ListingMediaManager, build_manager

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

_manager: Optional[ListingMediaManager] = None

def get_manager() -> ListingMediaManager:
    global _manager
    if _manager is None:
        _manager = build_manager(settings)
    return _manager

def _to_jsonable(x):
    if isinstance(x, list):  return [_to_jsonable(v) for v in x]
    if isinstance(x, dict):  return {k: _to_jsonable(v) for k, v in x.items()}
    if isinstance(x, Decimal):
        return int(x) if x == x.to_integral_value() else float(x)
    return x

def _ok(b, c=200):
    return {"statusCode": c, "headers": {"Content-Type": "application/json"},
            "body": json.dumps(_to_jsonable(b), ensure_ascii=False)}

def _user_id(event: Dict[str, Any]) -> str:
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    return headers.get("x-user-id") or "user_dev_001"

def _route(event: Dict[str, Any]):
    method = (event.get("httpMethod") or "GET").upper()
    resource = event.get("resource") or ""
    params = event.get("pathParameters") or {}
    qs: Dict[str, str] = event.get("queryStringParameters") or {}
    listing_id = params.get("listing_id")
    manager = get_manager()

    if resource == "/listings" and method == "GET":
        page = manager.list_listings(
            owner_id=qs.get("owner"),
            limit=max(1, min(int(qs.get("limit") or "20"), 100)),
            cursor=qs.get("page_token"),
        )
        items = [l.to_document() for l in page.items]
        return _ok({"items": items, "count": len(items), "next_page_token": page.next_page_token})

    if resource == "/listings/{listing_id}":
        if method == "GET":
            return _ok(manager.get(listing_id).to_document())
        if method == "DELETE":
            manager.delete(listing_id)
            return _ok({"message": "Listing deleted", "_id": listing_id})

    if resource == "/listings/{listing_id}/favorite":
        if method == "POST":
            return _ok(manager.favorite(listing_id, _user_id(event)).to_document())
        if method == "DELETE":
            return _ok(manager.unfavorite(listing_id, _user_id(event)).to_document())

    raise NotFoundError(f"no route for {method} {resource}")

def handler(event, _ctx):
    try:
        return _route(event)
    except ValueError as e:
        return _ok({"message": str(e), "kind": "validation"}, 400)
    except Exception as e:
        code = status_for(e)
        if code >= 500:
            logger.exception("listing handler failed")
        return _ok(error_body(e), code)
