from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Sequence

from ..errors import DuplicateKeyError
from .models import AssetRecord, DestinationRecord, MatchResult, MatchStatus, NaturalKey

logger = logging.getLogger("catalog_sync.pipeline.reconciler")


def is_stale(source: AssetRecord, destination: DestinationRecord) -> bool:
    # Missing timestamps never trigger a re-export.
    if source.last_modified_at is None or destination.added_at is None:
        return False
    return source.last_modified_at > destination.added_at


def reconcile(
    source_records: Sequence[AssetRecord],
    dest_records: Iterable[DestinationRecord],
) -> MatchResult:
    """Join source and destination records on their natural key.

    Raises:
        DuplicateKeyError: if two source records share a key. Nothing is classified.
    """
    duplicates = [key for key, count in Counter(r.key for r in source_records).items() if count > 1]
    if duplicates:
        duplicates.sort()
        logger.error({"event": "reconcile.duplicate_keys", "count": len(duplicates)})
        raise DuplicateKeyError(duplicates)

    index: dict[NaturalKey, DestinationRecord] = {record.key: record for record in dest_records}

    statuses: dict[NaturalKey, MatchStatus] = {}
    for record in source_records:
        match = index.get(record.key)
        if match is None:
            statuses[record.key] = MatchStatus.SOURCE_ONLY
        elif is_stale(record, match):
            statuses[record.key] = MatchStatus.MATCHED_STALE
        else:
            statuses[record.key] = MatchStatus.MATCHED_UNCHANGED

    for key in index:
        if key not in statuses:
            statuses[key] = MatchStatus.DEST_ONLY

    result = MatchResult(statuses=statuses, source_records=tuple(source_records))
    logger.info({"event": "reconcile.complete", **result.summary()})
    return result
