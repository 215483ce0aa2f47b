from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union
from urllib.parse import quote

import sqlalchemy as sa
from sqlalchemy.engine import URL, Engine

from ..errors import CatalogNotFound

logger = logging.getLogger("catalog_sync.storage")

SIDECAR_SUFFIXES = ("-wal", "-shm")


def _make_readonly_url(path: Path) -> URL:
    # SQLite parses the filename as a URI, so "#", "?" and "%" in it must be escaped.
    # URL.create keeps the escapes; a URL string would have them decoded on parse.
    return URL.create(
        "sqlite",
        database=f"file:{quote(path.resolve().as_posix())}",
        query={"mode": "ro", "uri": "true"},
    )


@contextmanager
def catalog_snapshot(path: Union[str, Path]) -> Iterator[Engine]:
    """Yield a read-only engine on a private copy of the catalog at ``path``.

    The live file is only ever read by the copy. The copy and the engine are
    released on every exit path, including errors raised by the caller.
    """
    source = Path(path)
    if not source.is_file():
        raise CatalogNotFound(source)

    with tempfile.TemporaryDirectory(prefix="catalog-sync-") as workdir:
        copy = Path(workdir) / source.name
        shutil.copy2(source, copy)
        for suffix in SIDECAR_SUFFIXES:
            sidecar = source.with_name(source.name + suffix)
            if sidecar.exists():
                shutil.copy2(sidecar, copy.with_name(copy.name + suffix))

        engine = sa.create_engine(_make_readonly_url(copy), future=True)
        logger.debug({"event": "storage.snapshot.acquired", "catalog": source.name})
        try:
            yield engine
        finally:
            engine.dispose()
            logger.debug({"event": "storage.snapshot.released", "catalog": source.name})
