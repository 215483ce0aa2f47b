from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ..errors import ScriptError

logger = logging.getLogger("catalog_sync.clients.osascript")


def quote(value: str) -> str:
    """Render ``value`` as an AppleScript string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def quote_list(values: Iterable[str]) -> str:
    return "{" + ", ".join(quote(value) for value in values) + "}"


class OsascriptRunner:
    """Run AppleScript source through ``osascript`` as a blocking request/response call."""

    def __init__(self, timeout: float = 120.0, executable: str = "osascript") -> None:
        self.timeout = timeout
        self.executable = executable

    async def run(self, script: str, *, name: str = "script") -> str:
        logger.debug({"event": "osascript.run", "script": name})
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                "-e",
                script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ScriptError(name, 127, str(exc)) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.error({"event": "osascript.timeout", "script": name, "timeout": self.timeout})
            raise ScriptError(name, None)

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace")
            logger.error({"event": "osascript.failed", "script": name, "returncode": proc.returncode})
            raise ScriptError(name, proc.returncode, message)
        return stdout.decode("utf-8", errors="replace").strip()
