from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from ..clients.library import LibraryClient
from ..errors import ApplicationCallError, ScriptError
from ..pipeline.limiter import RateLimiter
from ..pipeline.models import BatchOutcome, ImportReport

logger = logging.getLogger("catalog_sync.sync.importer")


class ImportCoordinator:
    """File a confirmed batch into the library's folder/album hierarchy.

    The library can drop files from an import without saying so. That is not
    detected here; the next run's reconciliation sees the asset as still pending.
    """

    def __init__(self, library: LibraryClient, limiter: RateLimiter, *, root_folder: str) -> None:
        self.library = library
        self.limiter = limiter
        self.root_folder = root_folder

    async def _call(self, batch_id: str, command: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        await self.limiter.acquire()
        try:
            return await func(*args)
        except ScriptError as exc:
            raise ApplicationCallError(batch_id, command, exc) from exc

    async def _ensure_folder(self, report: ImportReport, name: str, parent_id: Optional[str], label: str) -> str:
        folder_id = await self._call(report.batch_id, "find_folder", self.library.find_folder, name, parent_id)
        if folder_id is None:
            folder_id = await self._call(report.batch_id, "create_folder", self.library.create_folder, name, parent_id)
            report.folders_created.append(label)
            logger.info({"event": "import.folder.created", "batch": report.batch_id, "folder": label})
        return folder_id

    async def _ensure_album(self, report: ImportReport, folder_path: str, album_name: str) -> str:
        folder_id = await self._ensure_folder(report, self.root_folder, None, self.root_folder)
        walked: list[str] = [self.root_folder]
        for part in (p for p in folder_path.split("/") if p):
            walked.append(part)
            folder_id = await self._ensure_folder(report, part, folder_id, "/".join(walked))

        album_id = await self._call(report.batch_id, "find_album", self.library.find_album, album_name, folder_id)
        if album_id is None:
            album_id = await self._call(report.batch_id, "create_album", self.library.create_album, album_name, folder_id)
            label = "/".join(walked + [album_name])
            report.albums_created.append(label)
            logger.info({"event": "import.album.created", "batch": report.batch_id, "album": label})
        return album_id

    async def import_batch(self, outcome: BatchOutcome) -> ImportReport:
        report = ImportReport(batch_id=outcome.batch_id)

        groups: dict[tuple[str, str], list[Path]] = {}
        for key, path in outcome.produced_files:
            groups.setdefault((key.folder_path, key.album_name), []).append(path)

        for (folder_path, album_name), paths in groups.items():
            album_id = await self._ensure_album(report, folder_path, album_name)
            await self._call(outcome.batch_id, "import_files", self.library.import_files, paths, album_id)
            report.imported_files += len(paths)

        logger.info(
            {
                "event": "import.batch.requested",
                "batch": outcome.batch_id,
                "files": report.imported_files,
                "albums": len(groups),
            }
        )
        return report
