from __future__ import annotations
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, List, Optional, Union
from .errors import ValidationError

Number = Union[int, float]

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")

@dataclass(frozen=True)
class MediaReference:
    remote_url: str
    remote_id: str

    def to_item(self) -> Dict[str, str]:
        return {"remote_url": self.remote_url, "remote_id": self.remote_id}

    @classmethod
    def from_item(cls, item: Optional[Dict[str, Any]]) -> Optional["MediaReference"]:
        if not item:
            return None
        return cls(remote_url=str(item["remote_url"]), remote_id=str(item["remote_id"]))

@dataclass(frozen=True)
class Listing:
    street_address: str
    city: str
    price: Number
    size: Number
    owner_id: str
    image: Optional[MediaReference] = None
    favorited_by: FrozenSet[str] = field(default_factory=frozenset)
    listing_id: Optional[str] = None
    version: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def with_changes(self, **changes) -> "Listing":
        return replace(self, **changes)

    def to_item(self) -> Dict[str, Any]:
        """DynamoDB item. Numbers go in as Decimal, empty sets are left out."""
        item: Dict[str, Any] = {
            "listing_id": self.listing_id,
            "street_address": self.street_address,
            "city": self.city,
            "price": to_decimal(self.price),
            "size": to_decimal(self.size),
            "owner_id": self.owner_id,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.image is not None:
            item["image"] = self.image.to_item()
        if self.favorited_by:
            item["favorited_by"] = set(self.favorited_by)
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Listing":
        return cls(
            listing_id=item["listing_id"],
            street_address=item["street_address"],
            city=item["city"],
            price=from_decimal(item["price"]),
            size=from_decimal(item["size"]),
            owner_id=item.get("owner_id", ""),
            image=MediaReference.from_item(item.get("image")),
            favorited_by=frozenset(item.get("favorited_by") or ()),
            version=int(item.get("version", 1)),
            created_at=item.get("created_at"),
            updated_at=item.get("updated_at"),
        )

    def to_document(self) -> Dict[str, Any]:
        image = None
        if self.image is not None:
            image = {"url": self.image.remote_url, "cloudinary_id": self.image.remote_id}
        return {
            "_id": self.listing_id,
            "streetAddress": self.street_address,
            "city": self.city,
            "price": self.price,
            "size": self.size,
            "owner": self.owner_id,
            "favoritedBy": sorted(self.favorited_by),
            "image": image,
            "version": self.version,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

@dataclass
class ListingPage:
    items: List[Listing]
    next_page_token: Optional[str] = None

def to_decimal(value: Number) -> Decimal:
    return Decimal(str(value))

def from_decimal(value: Any) -> Number:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value

def _parse_number(name: str, value: Any) -> Number:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{name} must be a number")
        if not parsed.is_finite():
            raise ValidationError(f"{name} must be a finite number")
        number = from_decimal(parsed)
    if isinstance(number, float) and not math.isfinite(number):
        raise ValidationError(f"{name} must be a finite number")
    if number < 0:
        raise ValidationError(f"{name} must not be negative")
    return number

def _parse_text(name: str, value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{name} is required")
    return text

@dataclass
class ListingFields:
    """Scalar listing fields as supplied by a caller. ``None`` means "not supplied"."""

    street_address: Optional[Any] = None
    city: Optional[Any] = None
    price: Optional[Any] = None
    size: Optional[Any] = None

    _labels = {
        "street_address": "streetAddress",
        "city": "city",
        "price": "price",
        "size": "size",
    }

    def changes(self) -> Dict[str, Any]:
        """Validated values for the supplied fields only."""
        out: Dict[str, Any] = {}
        for attr, label in self._labels.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if attr in ("price", "size"):
                out[attr] = _parse_number(label, value)
            else:
                out[attr] = _parse_text(label, value)
        return out

    def require_all(self) -> Dict[str, Any]:
        missing = [label for attr, label in self._labels.items() if getattr(self, attr) is None]
        if missing:
            raise ValidationError(f"missing required field(s): {', '.join(missing)}")
        return self.changes()
