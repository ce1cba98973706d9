from __future__ import annotations
import logging
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


class Compensations:
    """
    Inverse actions for steps that already had an external side effect.

    Usage:
        with Compensations() as saga:
            media = store.upload(path, folder)
            saga.add("delete uploaded image", store.delete, media.remote_id)

            table.create(listing)

            saga.commit()
        # leaving the block with an exception runs the inverses newest first

    A failing inverse is logged and the remaining ones still run; the
    original exception is the one that propagates.
    """

    def __init__(self):
        self._actions: List[Tuple[str, Callable, tuple]] = []
        self._committed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and not self._committed:
            self.rollback()
        return False

    def add(self, label: str, fn: Callable, *args) -> None:
        self._actions.append((label, fn, args))

    def commit(self) -> None:
        self._committed = True
        self._actions.clear()

    def rollback(self) -> None:
        while self._actions:
            label, fn, args = self._actions.pop()
            try:
                fn(*args)
                logger.warning("compensated: %s", label)
            except Exception:
                logger.exception("compensation failed: %s", label)
