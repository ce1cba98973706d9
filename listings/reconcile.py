from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from shared.errors import RemoteStoreError
from shared.media import MediaStore

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    scanned: int = 0
    referenced: int = 0
    orphaned: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "referenced": self.referenced,
            "orphaned": self.orphaned,
            "deleted": self.deleted,
            "failed": self.failed,
        }


def sweep_orphans(
    store: MediaStore,
    table,
    folder: str,
    grace_seconds: int,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> SweepReport:
    """
    Delete remote images under ``folder`` that no listing references.

    Objects younger than ``grace_seconds`` are skipped so uploads whose
    listing is still being written are not reaped.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=grace_seconds)
    referenced = set(table.iter_media_ids())
    report = SweepReport(referenced=len(referenced))

    for obj in store.iter_objects(folder):
        report.scanned += 1
        if obj.remote_id in referenced or obj.created_at > cutoff:
            continue
        report.orphaned.append(obj.remote_id)
        if dry_run:
            continue
        try:
            store.delete(obj.remote_id)
            report.deleted.append(obj.remote_id)
        except RemoteStoreError:
            logger.warning("sweep could not delete %s", obj.remote_id, exc_info=True)
            report.failed.append(obj.remote_id)

    logger.info(
        "sweep of %s: scanned=%d orphaned=%d deleted=%d failed=%d",
        folder, report.scanned, len(report.orphaned), len(report.deleted), len(report.failed),
    )
    return report
