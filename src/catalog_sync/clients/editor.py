"""Scripting client for the editing application that renders exports."""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from .osascript import OsascriptRunner, quote, quote_list


@runtime_checkable
class EditorClient(Protocol):
    async def set_output_directory(self, profile: str, directory: Path) -> None: ...

    async def select_assets(self, source_ids: Sequence[str]) -> None: ...

    async def start_export(self, profile: str) -> None: ...

    async def set_completion_hook(self, script_path: Optional[Path]) -> None: ...


class ScriptedEditor:
    """Drive the editor through AppleScript.

    Variants are always looked up again by id; no application object reference
    is kept between calls.
    """

    def __init__(self, app_name: str, runner: Optional[OsascriptRunner] = None) -> None:
        self.app_name = app_name
        self.runner = runner or OsascriptRunner()

    def _document_script(self, body: str) -> str:
        return (
            f"tell application {quote(self.app_name)}\n"
            "  tell current document\n"
            f"{body}\n"
            "  end tell\n"
            "end tell"
        )

    async def set_output_directory(self, profile: str, directory: Path) -> None:
        body = (
            f"    set root folder type of recipe {quote(profile)} to custom location\n"
            f"    set root folder location of recipe {quote(profile)} to POSIX file {quote(str(directory))}"
        )
        await self.runner.run(self._document_script(body), name="set_output_directory")

    async def select_assets(self, source_ids: Sequence[str]) -> None:
        body = (
            f"    set wanted to {quote_list(source_ids)}\n"
            "    set picked to {}\n"
            "    repeat with variantId in wanted\n"
            "      set end of picked to (first variant whose id is (contents of variantId))\n"
            "    end repeat\n"
            "    select variants picked"
        )
        await self.runner.run(self._document_script(body), name="select_assets")

    async def start_export(self, profile: str) -> None:
        body = f"    process (selected variants) recipe {quote(profile)}"
        await self.runner.run(self._document_script(body), name="start_export")

    async def set_completion_hook(self, script_path: Optional[Path]) -> None:
        target = f"POSIX file {quote(str(script_path))}" if script_path is not None else quote("")
        script = f"tell application {quote(self.app_name)} to set batch done script to {target}"
        await self.runner.run(script, name="set_completion_hook")
