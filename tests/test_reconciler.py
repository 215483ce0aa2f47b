from datetime import datetime, timedelta, timezone

import pytest

from catalog_sync.errors import DuplicateKeyError
from catalog_sync.pipeline.models import AssetRecord, DestinationRecord, MatchStatus, NaturalKey
from catalog_sync.pipeline.reconciler import reconcile

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _src(name: str, modified: int | None, album: str = "Trip", folder: str = "2023") -> AssetRecord:
    stamp = None if modified is None else T0 + timedelta(seconds=modified)
    return AssetRecord(key=NaturalKey(folder, album, name), source_id=f"src-{name}", last_modified_at=stamp)


def _dst(name: str, added: int | None, album: str = "Trip", folder: str = "2023") -> DestinationRecord:
    stamp = None if added is None else T0 + timedelta(seconds=added)
    return DestinationRecord(key=NaturalKey(folder, album, name), destination_id=f"dst-{name}", added_at=stamp)


def test_new_asset_is_source_only():
    result = reconcile([_src("IMG1", 100)], [])

    assert result.source_only == {NaturalKey("2023", "Trip", "IMG1")}
    assert [record.source_id for record in result.pending()] == ["src-IMG1"]


def test_newer_edit_is_stale_and_older_edit_is_unchanged():
    result = reconcile(
        [_src("IMG1", 200), _src("IMG2", 100), _src("IMG3", 100)],
        [_dst("IMG1", 100), _dst("IMG2", 200), _dst("IMG3", 100)],
    )

    assert result.matched_stale == {NaturalKey("2023", "Trip", "IMG1")}
    # Equal timestamps are not newer.
    assert result.matched_unchanged == {NaturalKey("2023", "Trip", "IMG2"), NaturalKey("2023", "Trip", "IMG3")}


@pytest.mark.parametrize(
    "source_ts, dest_ts",
    [(None, 100), (100, None), (None, None)],
)
def test_missing_timestamp_is_never_stale(source_ts, dest_ts):
    result = reconcile([_src("IMG1", source_ts)], [_dst("IMG1", dest_ts)])

    assert result.statuses[NaturalKey("2023", "Trip", "IMG1")] is MatchStatus.MATCHED_UNCHANGED
    assert result.pending() == []


def test_destination_only_assets_are_reported_but_not_pending():
    result = reconcile([_src("IMG1", 100)], [_dst("IMG1", 150), _dst("OLD", 10, album="Gone")])

    assert result.dest_only == {NaturalKey("2023", "Gone", "OLD")}
    assert result.pending() == []


def test_same_filename_in_different_albums_are_distinct_keys():
    result = reconcile([_src("IMG1", 100, album="A"), _src("IMG1", 100, album="B")], [_dst("IMG1", 150, album="A")])

    assert result.matched_unchanged == {NaturalKey("2023", "A", "IMG1")}
    assert result.source_only == {NaturalKey("2023", "B", "IMG1")}


def test_duplicate_source_key_raises():
    records = [_src("IMG1", 100), _src("IMG2", 100), _src("IMG1", 300)]

    with pytest.raises(DuplicateKeyError) as excinfo:
        reconcile(records, [])

    assert excinfo.value.keys == [NaturalKey("2023", "Trip", "IMG1")]


def test_reconcile_is_deterministic():
    source = [_src("IMG1", 200), _src("IMG2", None), _src("IMG3", 50)]
    dest = [_dst("IMG1", 100), _dst("IMG3", 60), _dst("IMG9", 1)]

    first = reconcile(source, dest)
    second = reconcile(list(source), list(dest))

    assert first == second
    assert first.summary() == second.summary() == {
        "source_only": 1,
        "dest_only": 1,
        "matched_unchanged": 1,
        "matched_stale": 1,
    }


def test_pending_preserves_source_order():
    source = [_src("C", 5), _src("A", 5), _src("B", 500)]
    result = reconcile(source, [_dst("A", 10), _dst("B", 10)])

    assert [record.key.base_filename for record in result.pending()] == ["C", "B"]
