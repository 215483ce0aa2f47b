"""Completion signalling for the editor's exports.

The editor has no synchronous "export finished" result. Instead a small shell
script is installed as its batch-complete hook; the script writes the batch's
correlation token into a sentinel file, and the appearance of that file is the
notification edge.
"""
from __future__ import annotations

import asyncio
import logging
import shlex
import stat
from pathlib import Path
from typing import Optional

from watchfiles import awatch

from ..errors import WatchEnded

logger = logging.getLogger("catalog_sync.sync.sentinel")

HOOK_TEMPLATE = """#!/bin/sh
# batch-complete hook for {batch_id}
printf '%s' {token} > {partial} && mv -f {partial} {sentinel}
"""


def write_hook_script(hook_path: Path, sentinel_path: Path, token: str, batch_id: str = "") -> Path:
    """Write an executable hook that atomically publishes ``token`` at ``sentinel_path``."""
    partial = sentinel_path.with_name(sentinel_path.name + ".partial")
    hook_path.write_text(
        HOOK_TEMPLATE.format(
            batch_id=batch_id or "batch",
            token=shlex.quote(token),
            partial=shlex.quote(str(partial)),
            sentinel=shlex.quote(str(sentinel_path)),
        ),
        encoding="utf-8",
    )
    hook_path.chmod(hook_path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return hook_path


def read_token(sentinel_path: Path) -> Optional[str]:
    try:
        content = sentinel_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return content or None


class SentinelWatcher:
    """Wait for a sentinel file using filesystem notifications.

    The caller bounds the wait (``asyncio.wait_for``); the watcher itself never
    gives up. Notification is the signal. The ``tick_ms`` wake-up exists only for
    a rename that lands between the first ``read_token`` and the moment the
    notifier is armed, which no event will ever report; it is not a polling
    loop and a longer tick only delays that one case.
    """

    def __init__(self, *, force_polling: Optional[bool] = None, tick_ms: int = 1000, debounce_ms: int = 200) -> None:
        self.force_polling = force_polling
        self.tick_ms = tick_ms
        self.debounce_ms = debounce_ms

    async def wait_for_token(self, sentinel_path: Path) -> str:
        token = read_token(sentinel_path)
        if token is not None:
            return token

        name = sentinel_path.name
        stop = asyncio.Event()
        try:
            async for _changes in awatch(
                sentinel_path.parent,
                watch_filter=lambda _change, path: Path(path).name == name,
                debounce=self.debounce_ms,
                stop_event=stop,
                rust_timeout=self.tick_ms,
                yield_on_timeout=True,
                force_polling=self.force_polling,
                recursive=False,
            ):
                token = read_token(sentinel_path)
                if token is not None:
                    logger.debug({"event": "sentinel.notified", "sentinel": str(sentinel_path)})
                    return token
        finally:
            stop.set()
        raise WatchEnded(sentinel_path.parent)
