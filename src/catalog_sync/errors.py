"""Error taxonomy for sync runs.

Fatal errors mean the inputs or the environment cannot be trusted and the run
aborts. Batch errors are local to one batch: the batch is recorded as degraded
and picked up again by the next run's reconciliation.
"""
from __future__ import annotations

from typing import Iterable, Optional


class SyncError(Exception):
    """Base exception for catalog sync."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class FatalSyncError(SyncError):
    """Aborts the whole run."""


class CatalogNotFound(FatalSyncError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"Catalog not found: {path}")


class SchemaMismatch(FatalSyncError):
    """An expected table or column is absent from a catalog."""

    def __init__(self, catalog: str, missing: Iterable[str]):
        self.catalog = catalog
        self.missing = sorted(missing)
        super().__init__(f"{catalog} catalog is missing {', '.join(self.missing)}")


class DuplicateKeyError(FatalSyncError):
    """Two source records share one natural key."""

    def __init__(self, keys: Iterable):
        self.keys = list(keys)
        shown = ", ".join(str(key) for key in self.keys[:5])
        more = f" (+{len(self.keys) - 5} more)" if len(self.keys) > 5 else ""
        super().__init__(f"Duplicate natural keys in source catalog: {shown}{more}")


class CorrelationError(FatalSyncError):
    """A completion signal did not belong to the batch that was dispatched."""

    def __init__(self, batch_id: str, expected: str, received: str):
        self.batch_id = batch_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Batch {batch_id}: completion token {received!r} does not match dispatched token {expected!r}"
        )


class BatchError(SyncError):
    """Failure confined to one batch."""

    def __init__(self, batch_id: str, message: str):
        self.batch_id = batch_id
        # Scratch directory left behind for inspection, when there is one.
        self.work_dir = None
        super().__init__(message)


class PartialBatchError(BatchError):
    def __init__(self, batch_id: str, expected: int, actual: int, unexpected: Iterable[str] = ()):
        self.expected = expected
        self.actual = actual
        self.unexpected = list(unexpected)
        extra = f" ({len(self.unexpected)} not in the batch: {', '.join(self.unexpected[:5])})" if self.unexpected else ""
        super().__init__(batch_id, f"Batch {batch_id}: expected {expected} rendered files, found {actual}{extra}")


class ExportTimeout(BatchError):
    def __init__(self, batch_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(batch_id, f"Batch {batch_id}: no completion signal after {timeout:g}s")


class ApplicationCallError(BatchError):
    """A scripting command against an external application failed."""

    def __init__(self, batch_id: str, command: str, cause: Optional[BaseException] = None):
        self.command = command
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(batch_id, f"Batch {batch_id}: {command} failed{detail}")


class ScratchError(BatchError):
    """The batch's work directory could not be prepared or watched."""

    def __init__(self, batch_id: str, cause: BaseException):
        self.cause = cause
        super().__init__(batch_id, f"Batch {batch_id}: scratch directory unusable: {cause}")


class WatchEnded(SyncError):
    """A sentinel watch stopped before any token arrived."""

    def __init__(self, directory):
        self.directory = directory
        super().__init__(f"Watch on {directory} ended without a token")


class ScriptError(SyncError):
    """osascript exited non-zero or timed out."""

    def __init__(self, script_name: str, returncode: Optional[int], stderr: str = ""):
        self.script_name = script_name
        self.returncode = returncode
        self.stderr = stderr.strip()
        status = "timed out" if returncode is None else f"exited {returncode}"
        super().__init__(f"{script_name} {status}" + (f": {self.stderr}" if self.stderr else ""))
