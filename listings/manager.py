from __future__ import annotations
import logging
from typing import Optional
from shared.errors import NotFoundError, ValidationError
from shared.locks import KeyedLocks
from shared.media import MediaStore
from shared.models import Listing, ListingFields, ListingPage, MediaReference
from shared.saga import Compensations
from shared.staging import StagedFile

logger = logging.getLogger(__name__)


class ListingMediaManager:
    """
    Keeps each listing's image reference consistent with the media store.

    Ordering rules:
      - create: upload, then persist; a failed persist deletes the upload.
      - replace: upload new, persist new reference, then delete old.
      - delete: delete the remote image, then the record.
    Mutations on one listing id are serialized through ``locks``.
    """

    def __init__(self, store: MediaStore, table, folder: str, locks: Optional[KeyedLocks] = None):
        self.store = store
        self.table = table
        self.folder = folder
        self.locks = locks or KeyedLocks()

    def _upload(self, staged: StagedFile) -> MediaReference:
        try:
            return self.store.upload(staged.path, self.folder)
        finally:
            staged.release()

    def create(self, fields: ListingFields, staged: Optional[StagedFile], owner_id: str) -> Listing:
        try:
            values = fields.require_all()
            if staged is None:
                raise ValidationError("image file is required")

            with Compensations() as saga:
                media = self._upload(staged)
                saga.add(f"delete orphaned upload {media.remote_id}", self.store.delete, media.remote_id)

                listing = self.table.create(Listing(owner_id=owner_id, image=media, **values))

                saga.commit()
        finally:
            if staged is not None:
                staged.release()

        logger.info("created listing %s with image %s", listing.listing_id, media.remote_id)
        return listing

    def replace(self, listing_id: str, fields: ListingFields, staged: Optional[StagedFile] = None) -> Listing:
        try:
            changes = fields.changes()
            with self.locks.hold(listing_id):
                current = self.table.find_by_id(listing_id)
                if current is None:
                    raise NotFoundError(f"listing {listing_id} not found")
                if staged is None and not changes:
                    return current

                with Compensations() as saga:
                    if staged is not None:
                        media = self._upload(staged)
                        saga.add(f"delete unused upload {media.remote_id}", self.store.delete, media.remote_id)
                        changes["image"] = media

                    updated = self.table.update(listing_id, changes, expected_version=current.version)
                    if updated is None:
                        raise NotFoundError(f"listing {listing_id} not found")

                    saga.commit()

                if staged is not None and current.image is not None:
                    self._discard(current.image)
        finally:
            if staged is not None:
                staged.release()

        logger.info("updated listing %s (%s)", listing_id, ", ".join(sorted(changes)))
        return updated

    def _discard(self, old: MediaReference) -> None:
        # The record already points at the new image; a failure here only leaves an orphan for the sweep.
        try:
            self.store.delete(old.remote_id)
        except Exception:
            logger.warning("could not delete replaced image %s; left for reconciliation", old.remote_id, exc_info=True)

    def delete(self, listing_id: str) -> None:
        with self.locks.hold(listing_id):
            current = self.table.find_by_id(listing_id)
            if current is None:
                raise NotFoundError(f"listing {listing_id} not found")
            if current.image is not None:
                self.store.delete(current.image.remote_id)
            self.table.delete_by_id(listing_id)
        logger.info("deleted listing %s", listing_id)

    def get(self, listing_id: str) -> Listing:
        listing = self.table.find_by_id(listing_id)
        if listing is None:
            raise NotFoundError(f"listing {listing_id} not found")
        return listing

    def list_listings(self, owner_id: Optional[str] = None, limit: int = 20, cursor: Optional[str] = None) -> ListingPage:
        return self.table.list_page(owner_id=owner_id, limit=limit, cursor=cursor)

    def favorite(self, listing_id: str, user_id: str) -> Listing:
        listing = self.table.add_favorite(listing_id, user_id)
        if listing is None:
            raise NotFoundError(f"listing {listing_id} not found")
        return listing

    def unfavorite(self, listing_id: str, user_id: str) -> Listing:
        listing = self.table.remove_favorite(listing_id, user_id)
        if listing is None:
            raise NotFoundError(f"listing {listing_id} not found")
        return listing


def build_manager(settings) -> ListingMediaManager:
    from shared.dynamo import listing_table
    from shared.media import build_media_store
    return ListingMediaManager(
        store=build_media_store(settings),
        table=listing_table(settings),
        folder=settings.media_folder,
    )
