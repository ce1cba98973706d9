from __future__ import annotations


class ListingError(Exception):
    """Base class for every failure the listing service reports."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ListingError):
    status_code = 400
    kind = "validation"


class NotFoundError(ListingError):
    status_code = 404
    kind = "not_found"


class ConflictError(ListingError):
    status_code = 409
    kind = "conflict"


class RemoteStoreError(ListingError):
    kind = "remote_store"


class RemoteStoreTimeout(RemoteStoreError):
    kind = "remote_store_timeout"


class PersistenceError(ListingError):
    kind = "persistence"


class PersistenceTimeout(PersistenceError):
    kind = "persistence_timeout"


def error_body(exc: Exception) -> dict:
    if isinstance(exc, ListingError):
        return {"message": exc.message, "kind": exc.kind}
    return {"message": str(exc), "kind": "error"}


def status_for(exc: Exception) -> int:
    return exc.status_code if isinstance(exc, ListingError) else 500
