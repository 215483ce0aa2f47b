from __future__ import annotations

from typing import Sequence

from .models import AssetRecord, Batch


def make_batches(pending: Sequence[AssetRecord], batch_size: int) -> list[Batch]:
    """Split pending records into ordered batches of at most ``batch_size``.

    A batch is also closed when the next record's filename is already in it:
    renders are named after the base filename, so two equal names would land on
    the same path in one export directory.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    batches: list[Batch] = []
    current: list[AssetRecord] = []
    names: set[str] = set()

    def flush() -> None:
        if current:
            batches.append(Batch(batch_id=f"batch-{len(batches) + 1:04d}", items=tuple(current)))
            current.clear()
            names.clear()

    for record in pending:
        if len(current) >= batch_size or record.key.base_filename in names:
            flush()
        current.append(record)
        names.add(record.key.base_filename)
    flush()
    return batches
