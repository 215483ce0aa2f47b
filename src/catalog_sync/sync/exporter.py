from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from PIL import Image, UnidentifiedImageError

from ..clients.editor import EditorClient
from ..errors import (
    ApplicationCallError,
    BatchError,
    CorrelationError,
    ExportTimeout,
    PartialBatchError,
    ScratchError,
    ScriptError,
    WatchEnded,
)
from ..pipeline.limiter import RateLimiter
from ..pipeline.models import Batch, BatchOutcome, NaturalKey
from .sentinel import SentinelWatcher, write_hook_script

logger = logging.getLogger("catalog_sync.sync.exporter")

RENDER_DIRNAME = "renders"
HOOK_FILENAME = "on_batch_done.sh"
SENTINEL_FILENAME = "batch_done.token"


def _is_complete_render(path: Path) -> bool:
    if not path.is_file() or path.name.startswith(".") or path.stat().st_size == 0:
        return False
    if path.suffix.lower() not in Image.registered_extensions():
        # Formats Pillow cannot decode (e.g. HEIC) are trusted on size alone.
        return True
    try:
        with Image.open(path) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        return False
    return True


def collect_renders(render_dir: Path, batch: Batch) -> tuple[list[tuple[NaturalKey, Path]], list[Path]]:
    """Map complete renders back to the batch's keys by base filename, in batch order.

    Returns the mapped renders and every other complete render in the directory
    (a second file for one stem, or a name no batch key accounts for).
    """
    by_stem: dict[str, Path] = {}
    unmatched: list[Path] = []
    for path in sorted(render_dir.iterdir()):
        if not _is_complete_render(path):
            continue
        if path.stem in by_stem:
            logger.warning({"event": "export.render.duplicate_name", "batch": batch.batch_id, "file": path.name})
            unmatched.append(path)
            continue
        by_stem[path.stem] = path

    produced: list[tuple[NaturalKey, Path]] = []
    for item in batch:
        path = by_stem.pop(item.key.base_filename, None)
        if path is not None:
            produced.append((item.key, path))
    for stray in by_stem.values():
        logger.warning({"event": "export.render.unexpected", "batch": batch.batch_id, "file": stray.name})
        unmatched.append(stray)
    return produced, sorted(unmatched)


class ExportCoordinator:
    """Render one batch through the editor and verify what came back."""

    def __init__(
        self,
        editor: EditorClient,
        limiter: RateLimiter,
        *,
        scratch_root: Path,
        profile: str,
        timeout_seconds: float,
        watcher: Optional[SentinelWatcher] = None,
    ) -> None:
        self.editor = editor
        self.limiter = limiter
        self.scratch_root = Path(scratch_root)
        self.profile = profile
        self.timeout_seconds = timeout_seconds
        self.watcher = watcher or SentinelWatcher()

    async def _call(self, batch: Batch, command: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        await self.limiter.acquire()
        try:
            return await func(*args)
        except ScriptError as exc:
            raise ApplicationCallError(batch.batch_id, command, exc) from exc

    def _prepare(self, batch: Batch) -> tuple[Path, Path, Path]:
        try:
            self.scratch_root.mkdir(parents=True, exist_ok=True)
            work_dir = Path(tempfile.mkdtemp(prefix=f"{batch.batch_id}-", dir=self.scratch_root))
        except OSError as exc:
            raise ScratchError(batch.batch_id, exc) from exc
        try:
            render_dir = work_dir / RENDER_DIRNAME
            render_dir.mkdir()
            sentinel = work_dir / SENTINEL_FILENAME
            hook = write_hook_script(work_dir / HOOK_FILENAME, sentinel, batch.correlation_token, batch.batch_id)
        except OSError as exc:
            error = ScratchError(batch.batch_id, exc)
            error.work_dir = work_dir
            raise error from exc
        return work_dir, sentinel, hook

    async def export_batch(self, batch: Batch) -> BatchOutcome:
        """Export ``batch`` into a fresh scratch directory.

        Raises:
            ScratchError: the work directory could not be created or watched.
            ApplicationCallError: a scripting command failed.
            ExportTimeout: no completion signal within the timeout.
            CorrelationError: the completion signal carried another batch's token.
            PartialBatchError: the complete renders do not match the batch one for one.
        """
        work_dir, sentinel, hook = self._prepare(batch)
        render_dir = work_dir / RENDER_DIRNAME

        succeeded = False
        try:
            await self._call(batch, "set_completion_hook", self.editor.set_completion_hook, hook)
            await self._call(batch, "set_output_directory", self.editor.set_output_directory, self.profile, render_dir)
            await self._call(batch, "select_assets", self.editor.select_assets, batch.source_ids)
            await self._call(batch, "start_export", self.editor.start_export, self.profile)
            logger.info({"event": "export.batch.dispatched", "batch": batch.batch_id, "assets": len(batch)})

            try:
                token = await asyncio.wait_for(self.watcher.wait_for_token(sentinel), self.timeout_seconds)
            except asyncio.TimeoutError:
                raise ExportTimeout(batch.batch_id, self.timeout_seconds) from None
            except (WatchEnded, OSError) as exc:
                raise ScratchError(batch.batch_id, exc) from exc

            if token != batch.correlation_token:
                raise CorrelationError(batch.batch_id, batch.correlation_token, token)

            produced, unmatched = collect_renders(render_dir, batch)
            actual = len(produced) + len(unmatched)
            if unmatched or len(produced) != len(batch):
                raise PartialBatchError(
                    batch.batch_id,
                    expected=len(batch),
                    actual=actual,
                    unexpected=[path.name for path in unmatched],
                )

            logger.info({"event": "export.batch.confirmed", "batch": batch.batch_id, "renders": actual})
            succeeded = True
            return BatchOutcome(
                batch_id=batch.batch_id,
                correlation_token=token,
                produced_files=produced,
                expected_count=len(batch),
                actual_count=actual,
                work_dir=work_dir,
            )
        except BatchError as exc:
            exc.work_dir = work_dir
            raise
        finally:
            await self._reset_hook(batch, work_dir, raise_errors=succeeded)

    async def _reset_hook(self, batch: Batch, work_dir: Path, *, raise_errors: bool) -> None:
        try:
            await self._call(batch, "clear_completion_hook", self.editor.set_completion_hook, None)
        except ApplicationCallError as exc:
            # Never mask the error that is already propagating.
            if raise_errors:
                exc.work_dir = work_dir
                raise
            logger.exception({"event": "export.hook.reset_failed", "batch": batch.batch_id})
