from __future__ import annotations
import logging
from shared.config import settings
from shared.dynamo import listing_table
from shared.media import build_media_store
from listings.reconcile import sweep_orphans

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

def handler(event, _ctx):
    """Scheduled sweep. ``{"dry_run": true}`` in the event only reports."""
    event = event or {}
    report = sweep_orphans(
        store=build_media_store(settings),
        table=listing_table(settings),
        folder=settings.media_folder,
        grace_seconds=int(event.get("grace_seconds", settings.orphan_grace_seconds)),
        dry_run=bool(event.get("dry_run", False)),
    )
    return report.as_dict()
