from __future__ import annotations
import logging
from functools import lru_cache
from typing import List, Optional, Union
from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from shared.config import settings
from shared.errors import ListingError, error_body, status_for
from shared.models import ListingFields
from shared.staging import StagedFile, stage_upload
from listings.manager import ListingMediaManager, build_manager

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Listing Media API", version="1.0.0")

Number = Union[int, float]


class ImageOut(BaseModel):
    url: str
    cloudinary_id: str


class ListingOut(BaseModel):
    id: str = Field(alias="_id")
    streetAddress: str
    city: str
    price: Number
    size: Number
    owner: str
    favoritedBy: List[str] = []
    image: Optional[ImageOut] = None
    version: int
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class ListingPageOut(BaseModel):
    items: List[ListingOut]
    count: int
    next_page_token: Optional[str] = None


class DeletedOut(BaseModel):
    message: str
    id: str = Field(alias="_id")


# Auth is owned by the gateway; locally every request acts as the dev user
def get_user_id() -> str:
    return "user_dev_001" if settings.auth_bypass else "user_unknown"


@lru_cache(maxsize=1)
def get_manager() -> ListingMediaManager:
    return build_manager(settings)


@app.exception_handler(ListingError)
def listing_error_handler(_request: Request, exc: ListingError):
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


@app.exception_handler(Exception)
def unexpected_error_handler(_request: Request, exc: Exception):
    logger.exception("unhandled error")
    return JSONResponse(status_code=status_for(exc), content=error_body(exc))


def _stage(image: Optional[UploadFile], required: bool) -> Optional[StagedFile]:
    if image is None:
        return stage_upload(None, None, required=required, max_bytes=settings.max_upload_bytes)
    return stage_upload(
        image.file,
        image.filename,
        image.content_type,
        required=required,
        max_bytes=settings.max_upload_bytes,
    )


@app.get("/ping")
def ping():
    return {
        "ok": True,
        "region": settings.aws_region,
        "media_backend": settings.media_backend,
        "stage": settings.stage,
    }


@app.post("/listings", status_code=201, response_model=ListingOut)
def create_listing(
    street_address: Optional[str] = Form(None, alias="streetAddress"),
    city: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None, description="jpg, jpeg or png"),
    user_id: str = Depends(get_user_id),
    manager: ListingMediaManager = Depends(get_manager),
):
    """
    Create a listing with its image.
      1) stage the upload to a temp file (allow-list jpg/jpeg/png).
      2) upload it to the media store.
      3) persist the listing; a failed write removes the uploaded image.
    """
    fields = ListingFields(street_address=street_address, city=city, price=price, size=size)
    staged = _stage(image, required=True)
    listing = manager.create(fields, staged, owner_id=user_id)
    return listing.to_document()


@app.put("/listings/{listing_id}", response_model=ListingOut)
def replace_listing(
    listing_id: str,
    street_address: Optional[str] = Form(None, alias="streetAddress"),
    city: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None, description="Optional replacement image"),
    manager: ListingMediaManager = Depends(get_manager),
):
    """Only the supplied fields change; without ``image`` the stored image is kept."""
    fields = ListingFields(street_address=street_address, city=city, price=price, size=size)
    staged = _stage(image, required=False)
    listing = manager.replace(listing_id, fields, staged)
    return listing.to_document()


@app.delete("/listings/{listing_id}", response_model=DeletedOut)
def delete_listing(listing_id: str, manager: ListingMediaManager = Depends(get_manager)):
    manager.delete(listing_id)
    return {"message": "Listing deleted", "_id": listing_id}


@app.get("/listings/{listing_id}", response_model=ListingOut)
def get_listing(listing_id: str, manager: ListingMediaManager = Depends(get_manager)):
    return manager.get(listing_id).to_document()


@app.get("/listings", response_model=ListingPageOut)
def list_listings(
    owner: Optional[str] = Query(None, description="Filter by owner id"),
    limit: int = Query(20, ge=1, le=100),
    page_token: Optional[str] = Query(None, description="Base64 cursor"),
    manager: ListingMediaManager = Depends(get_manager),
):
    page = manager.list_listings(owner_id=owner, limit=limit, cursor=page_token)
    items = [listing.to_document() for listing in page.items]
    return {"items": items, "count": len(items), "next_page_token": page.next_page_token}


@app.post("/listings/{listing_id}/favorite", response_model=ListingOut)
def favorite_listing(
    listing_id: str,
    user_id: str = Depends(get_user_id),
    manager: ListingMediaManager = Depends(get_manager),
):
    return manager.favorite(listing_id, user_id).to_document()


@app.delete("/listings/{listing_id}/favorite", response_model=ListingOut)
def unfavorite_listing(
    listing_id: str,
    user_id: str = Depends(get_user_id),
    manager: ListingMediaManager = Depends(get_manager),
):
    return manager.unfavorite(listing_id, user_id).to_document()
