from __future__ import annotations

from typing import Callable, Protocol, Sequence, runtime_checkable

from .models import Batch, BatchOutcome, ImportReport

# Receives (image primary key, candidate variant rows) and returns the chosen row.
VariantPolicy = Callable[[int, Sequence], object]


@runtime_checkable
class Exporter(Protocol):
    async def export_batch(self, batch: Batch) -> BatchOutcome: ...


@runtime_checkable
class Importer(Protocol):
    async def import_batch(self, outcome: BatchOutcome) -> ImportReport: ...
