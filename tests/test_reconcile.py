from datetime import datetime, timedelta, timezone

from shared.errors import RemoteStoreError
from shared.media import RemoteObject
from shared.models import ListingFields, MediaReference
from listings.reconcile import sweep_orphans

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _seed(manager, store, make_staged):
    store.next_refs.append(MediaReference("https://cdn.example/kept.jpg", "listings/kept"))
    manager.create(
        ListingFields(street_address="1 Main St", city="Springfield", price=1, size=1),
        make_staged(),
        owner_id="u",
    )
    old = NOW - timedelta(hours=3)
    store.objects["listings/kept"] = RemoteObject("listings/kept", old)
    store.objects["listings/orphan"] = RemoteObject("listings/orphan", old)
    store.objects["listings/fresh"] = RemoteObject("listings/fresh", NOW - timedelta(minutes=5))


def test_sweep_deletes_only_old_unreferenced_objects(manager, store, table, make_staged):
    _seed(manager, store, make_staged)

    report = sweep_orphans(store, table, "listings", grace_seconds=3600, now=NOW)

    assert report.scanned == 3
    assert report.referenced == 1
    assert report.orphaned == ["listings/orphan"]
    assert report.deleted == ["listings/orphan"]
    assert set(store.objects) == {"listings/kept", "listings/fresh"}


def test_dry_run_deletes_nothing(manager, store, table, make_staged):
    _seed(manager, store, make_staged)

    report = sweep_orphans(store, table, "listings", grace_seconds=3600, dry_run=True, now=NOW)

    assert report.orphaned == ["listings/orphan"]
    assert report.deleted == []
    assert store.deletes == []


def test_failed_delete_is_reported(manager, store, table, make_staged):
    _seed(manager, store, make_staged)
    store.fail_delete = RemoteStoreError("quota")

    report = sweep_orphans(store, table, "listings", grace_seconds=3600, now=NOW)

    assert report.failed == ["listings/orphan"]
    assert report.as_dict()["deleted"] == []
