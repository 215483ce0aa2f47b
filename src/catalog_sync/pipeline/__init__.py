"""Pure pipeline stages: reconciliation, batching and throttling."""

from .batcher import make_batches
from .limiter import RateLimiter
from .models import (
    AssetRecord,
    Batch,
    BatchOutcome,
    DestinationRecord,
    ImportReport,
    MatchResult,
    MatchStatus,
    NaturalKey,
)
from .reconciler import reconcile

__all__ = [
    "AssetRecord",
    "Batch",
    "BatchOutcome",
    "DestinationRecord",
    "ImportReport",
    "MatchResult",
    "MatchStatus",
    "NaturalKey",
    "RateLimiter",
    "make_batches",
    "reconcile",
]
