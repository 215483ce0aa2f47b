from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

import sqlalchemy as sa

from ..clients.editor import EditorClient, ScriptedEditor
from ..clients.library import LibraryClient, ScriptedLibrary
from ..clients.osascript import OsascriptRunner
from ..config import Settings, SyncPolicy
from ..errors import BatchError, CorrelationError, FatalSyncError, PartialBatchError
from ..pipeline.batcher import make_batches
from ..pipeline.interfaces import Exporter, Importer, VariantPolicy
from ..pipeline.limiter import RateLimiter
from ..pipeline.models import Batch, ImportReport
from ..pipeline.reconciler import reconcile
from ..storage.reader import primary_variant, read_destination, read_source
from ..storage.snapshot import catalog_snapshot
from ..telemetry import log_sync_event, log_timing
from .exporter import ExportCoordinator
from .importer import ImportCoordinator
from .sentinel import SentinelWatcher

logger = logging.getLogger("catalog_sync.sync.driver")


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


class RunState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    RECONCILING = "reconciling"
    BATCH_LOOP = "batch_loop"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(slots=True)
class DegradedBatch:
    batch_id: str
    error: str
    kind: str
    expected_count: Optional[int] = None
    actual_count: Optional[int] = None
    scratch_dir: Optional[Path] = None


@dataclass(slots=True)
class RunReport:
    state: RunState = RunState.IDLE
    reason: Optional[str] = None
    degraded_batches: list[DegradedBatch] = field(default_factory=list)
    completed_batches: list[str] = field(default_factory=list)
    imports: list[ImportReport] = field(default_factory=list)
    match_summary: dict[str, int] = field(default_factory=dict)
    total_batches: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        """A Done run with degraded batches is still a success with work left over."""
        return self.state is RunState.DONE


class SyncDriver:
    """Sequence one sync run: read, reconcile, then export and import batch by batch."""

    def __init__(
        self,
        settings: Settings,
        *,
        policy: Optional[SyncPolicy] = None,
        editor: Optional[EditorClient] = None,
        library: Optional[LibraryClient] = None,
        exporter: Optional[Exporter] = None,
        importer: Optional[Importer] = None,
        limiter: Optional[RateLimiter] = None,
        watcher: Optional[SentinelWatcher] = None,
        variant_policy: VariantPolicy = primary_variant,
    ) -> None:
        self.settings = settings
        self.policy = policy or settings.policy()
        self.variant_policy = variant_policy
        self.limiter = limiter or RateLimiter(self.policy.requests_per_minute)

        runner = OsascriptRunner(timeout=settings.script_timeout_seconds)
        self.exporter = exporter or ExportCoordinator(
            editor or ScriptedEditor(settings.editor_app, runner),
            self.limiter,
            scratch_root=settings.scratch_root,
            profile=settings.export_profile,
            timeout_seconds=self.policy.export_timeout_seconds,
            watcher=watcher,
        )
        self.importer = importer or ImportCoordinator(
            library or ScriptedLibrary(settings.library_app, runner),
            self.limiter,
            root_folder=settings.destination_root_folder,
        )
        self.report = RunReport()

    def _transition(self, state: RunState) -> None:
        logger.info({"event": "run.state", "from": self.report.state.value, "to": state.value})
        self.report.state = state

    async def run(self, cancel_event: Optional[CancelSignal] = None) -> RunReport:
        self.report = RunReport()
        started = time.monotonic()
        try:
            batches = self._plan()
            self._transition(RunState.BATCH_LOOP)
            for batch in batches:
                if cancel_event is not None and cancel_event.is_set():
                    self._abort("cancelled")
                    break
                await self._process(batch)
            else:
                self._transition(RunState.DONE)
        except FatalSyncError as exc:
            self._abort(str(exc))
        except sa.exc.SQLAlchemyError as exc:
            # An unreadable catalog is as untrustworthy as a mismatched one.
            self._abort(f"catalog read failed: {exc}")
        except Exception as exc:
            logger.exception({"event": "run.unexpected_error", "state": self.report.state.value})
            self._abort(f"unexpected error: {exc!r}")
        finally:
            self.report.finished_at = datetime.now(timezone.utc)
            log_timing("sync.run", (time.monotonic() - started) * 1000, {"state": self.report.state.value})

        log_sync_event(
            "run.finished",
            {
                "state": self.report.state.value,
                "reason": self.report.reason,
                "batches": self.report.total_batches,
                "completed": len(self.report.completed_batches),
                "degraded": [batch.batch_id for batch in self.report.degraded_batches],
            },
        )
        return self.report

    def _plan(self) -> list[Batch]:
        self._transition(RunState.READING)
        with catalog_snapshot(self.settings.source_catalog) as engine:
            source_records = read_source(engine, self.variant_policy)
        with catalog_snapshot(self.settings.destination_catalog) as engine:
            dest_records = read_destination(engine, self.settings.destination_root_folder)

        self._transition(RunState.RECONCILING)
        result = reconcile(source_records, dest_records)
        self.report.match_summary = result.summary()

        batches = make_batches(result.pending(), self.policy.batch_size)
        self.report.total_batches = len(batches)
        log_sync_event("run.planned", {"pending": len(result.pending()), "batches": len(batches)})
        return batches

    async def _process(self, batch: Batch) -> None:
        try:
            outcome = await self.exporter.export_batch(batch)
            if outcome.correlation_token != batch.correlation_token:
                raise CorrelationError(batch.batch_id, batch.correlation_token, outcome.correlation_token)
            try:
                report = await self.importer.import_batch(outcome)
            except BatchError as exc:
                if exc.work_dir is None:
                    exc.work_dir = outcome.work_dir
                raise
        except BatchError as exc:
            self._degrade(batch, exc)
            return

        self.report.imports.append(report)
        self.report.completed_batches.append(batch.batch_id)
        if outcome.work_dir is not None:
            _remove_scratch(outcome.work_dir)

    def _degrade(self, batch: Batch, exc: BatchError) -> None:
        scratch = exc.work_dir
        if scratch is not None and not self.settings.keep_degraded_scratch:
            _remove_scratch(scratch)
            scratch = None
        degraded = DegradedBatch(
            batch_id=batch.batch_id,
            error=str(exc),
            kind=type(exc).__name__,
            expected_count=exc.expected if isinstance(exc, PartialBatchError) else None,
            actual_count=exc.actual if isinstance(exc, PartialBatchError) else None,
            scratch_dir=scratch,
        )
        self.report.degraded_batches.append(degraded)
        logger.warning(
            {
                "event": "run.batch.degraded",
                "batch": batch.batch_id,
                "kind": degraded.kind,
                "error": degraded.error,
                "scratch_dir": str(scratch) if scratch else None,
            }
        )

    def _abort(self, reason: str) -> None:
        logger.error({"event": "run.aborted", "state": self.report.state.value, "reason": reason})
        self.report.reason = reason
        self.report.state = RunState.ABORTED


def _remove_scratch(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError:
        logger.warning({"event": "run.scratch.cleanup_failed", "path": str(path)}, exc_info=True)
