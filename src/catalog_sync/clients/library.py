"""Scripting client for the library application that ingests renders."""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from .osascript import OsascriptRunner, quote


@runtime_checkable
class LibraryClient(Protocol):
    async def find_folder(self, name: str, parent_id: Optional[str]) -> Optional[str]: ...

    async def create_folder(self, name: str, parent_id: Optional[str]) -> str: ...

    async def find_album(self, name: str, folder_id: str) -> Optional[str]: ...

    async def create_album(self, name: str, folder_id: str) -> str: ...

    async def import_files(self, paths: Sequence[Path], album_id: str) -> None: ...


class ScriptedLibrary:
    """Drive the library application through AppleScript, addressing containers by id."""

    def __init__(self, app_name: str, runner: Optional[OsascriptRunner] = None) -> None:
        self.app_name = app_name
        self.runner = runner or OsascriptRunner()

    def _tell(self, body: str) -> str:
        return f"tell application {quote(self.app_name)}\n{body}\nend tell"

    @staticmethod
    def _container(parent_id: Optional[str]) -> str:
        return f" of folder id {quote(parent_id)}" if parent_id else ""

    async def _lookup(self, kind: str, name: str, parent_id: Optional[str]) -> Optional[str]:
        body = (
            f"  set matches to (every {kind}{self._container(parent_id)} whose name is {quote(name)})\n"
            '  if matches is {} then return ""\n'
            "  return id of item 1 of matches"
        )
        result = await self.runner.run(self._tell(body), name=f"find_{kind}")
        return result or None

    async def _make(self, kind: str, name: str, parent_id: Optional[str]) -> str:
        location = f" at folder id {quote(parent_id)}" if parent_id else ""
        body = f"  return id of (make new {kind} named {quote(name)}{location})"
        return await self.runner.run(self._tell(body), name=f"create_{kind}")

    async def find_folder(self, name: str, parent_id: Optional[str]) -> Optional[str]:
        return await self._lookup("folder", name, parent_id)

    async def create_folder(self, name: str, parent_id: Optional[str]) -> str:
        return await self._make("folder", name, parent_id)

    async def find_album(self, name: str, folder_id: str) -> Optional[str]:
        return await self._lookup("album", name, folder_id)

    async def create_album(self, name: str, folder_id: str) -> str:
        return await self._make("album", name, folder_id)

    async def import_files(self, paths: Sequence[Path], album_id: str) -> None:
        files = "{" + ", ".join(f"POSIX file {quote(str(path))}" for path in paths) + "}"
        # "skip check duplicates false" keeps the duplicate check on.
        body = f"  import {files} into album id {quote(album_id)} skip check duplicates false"
        await self.runner.run(self._tell(body), name="import_files")
