"""Builders for on-disk test catalogs and in-process stand-ins for the two applications."""
from __future__ import annotations

import hashlib
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence
from uuid import uuid4

import sqlalchemy as sa
from PIL import Image

from catalog_sync.errors import ScriptError
from catalog_sync.storage.schemas import (
    ALBUM_KIND,
    FOLDER_KIND,
    destination_album,
    destination_album_assets,
    destination_asset,
    destination_attributes,
    destination_metadata,
    source_album,
    source_album_image,
    source_folder,
    source_image,
    source_metadata,
    source_variant,
)
from catalog_sync.sync.exporter import SENTINEL_FILENAME


@dataclass
class SourceEntry:
    folder: str
    album: str
    filename: str
    uuid: str
    modified: Optional[float]
    position: int = 0


@dataclass
class DestEntry:
    folder: str
    album: str
    filename: str
    uuid: str
    added: Optional[float]
    trashed: int = 0


def _engine(path: Path) -> sa.engine.Engine:
    return sa.create_engine(sa.engine.URL.create("sqlite", database=Path(path).as_posix()), future=True)


def build_source_catalog(
    path: Path,
    entries: Iterable[SourceEntry],
    extra_variants: Sequence[tuple[str, str, int, Optional[float]]] = (),
) -> Path:
    """Create an editor catalog. ``extra_variants`` rows are (entry uuid, variant uuid, position, modified)."""
    engine = _engine(path)
    source_metadata.create_all(engine)
    folders: dict[tuple[str, ...], int] = {}
    albums: dict[tuple[str, str], int] = {}
    images: dict[str, int] = {}
    with engine.begin() as conn:

        def folder_id(folder_path: str) -> Optional[int]:
            parent: Optional[int] = None
            parts = tuple(p for p in folder_path.split("/") if p)
            for depth in range(1, len(parts) + 1):
                prefix = parts[:depth]
                if prefix not in folders:
                    result = conn.execute(sa.insert(source_folder).values(ZNAME=prefix[-1], ZPARENT=parent))
                    folders[prefix] = result.inserted_primary_key[0]
                parent = folders[prefix]
            return parent

        for entry in entries:
            album_key = (entry.folder, entry.album)
            if album_key not in albums:
                result = conn.execute(sa.insert(source_album).values(ZNAME=entry.album, ZFOLDER=folder_id(entry.folder)))
                albums[album_key] = result.inserted_primary_key[0]
            image_pk = conn.execute(sa.insert(source_image).values(ZFILENAME=entry.filename)).inserted_primary_key[0]
            images[entry.uuid] = image_pk
            conn.execute(sa.insert(source_album_image).values(ZALBUM=albums[album_key], ZIMAGE=image_pk))
            conn.execute(
                sa.insert(source_variant).values(
                    ZUUID=entry.uuid, ZIMAGE=image_pk, ZPOSITION=entry.position, ZMODIFICATIONDATE=entry.modified
                )
            )
        for owner, variant_uuid, position, modified in extra_variants:
            conn.execute(
                sa.insert(source_variant).values(
                    ZUUID=variant_uuid, ZIMAGE=images[owner], ZPOSITION=position, ZMODIFICATIONDATE=modified
                )
            )
    engine.dispose()
    return path


def build_destination_catalog(path: Path, root: str, entries: Iterable[DestEntry] = ()) -> Path:
    engine = _engine(path)
    destination_metadata.create_all(engine)
    library = FakeLibrary(path)
    for entry in entries:
        album_id = library.ensure_album_path(root, entry.folder, entry.album)
        library.add_asset(int(album_id), entry.filename, entry.added, uuid=entry.uuid, trashed=entry.trashed)
    library.dispose()
    engine.dispose()
    return path


def save_render(path: Path, shade: int = 128, label: str = "") -> Path:
    """Write a small JPEG; ``label`` goes into its comment so equal-looking renders differ on disk."""
    comment = (label or path.name).encode("utf-8")
    Image.new("RGB", (8, 8), color=(shade, shade, shade)).save(path, format="JPEG", comment=comment)
    return path


class FakeEditor:
    """Renders JPEGs for selected ids and fires the installed batch-complete hook."""

    def __init__(
        self,
        filenames: dict[str, str],
        *,
        drop_ids: Iterable[str] = (),
        token_override: Optional[str] = None,
        fire_hook: bool = True,
        fail_command: Optional[str] = None,
        fail_on_ids: Iterable[str] = (),
        extra_renders: Iterable[str] = (),
        fail_hook_reset: bool = False,
    ) -> None:
        self.filenames = filenames
        self.drop_ids = set(drop_ids)
        self.token_override = token_override
        self.fire_hook = fire_hook
        self.fail_command = fail_command
        self.fail_on_ids = set(fail_on_ids)
        self.extra_renders = list(extra_renders)
        self.fail_hook_reset = fail_hook_reset
        self.calls: list[tuple] = []
        self.hook: Optional[Path] = None
        self.output: Optional[Path] = None
        self.selected: list[str] = []
        self.exports = 0

    def _record(self, command: str, *args) -> None:
        self.calls.append((command, *args))
        if command == self.fail_command:
            raise ScriptError(command, 1, "execution error")

    async def set_completion_hook(self, script_path: Optional[Path]) -> None:
        self._record("set_completion_hook", script_path)
        if script_path is None and self.fail_hook_reset:
            raise ScriptError("set_completion_hook", 1, "execution error")
        self.hook = script_path

    async def set_output_directory(self, profile: str, directory: Path) -> None:
        self._record("set_output_directory", profile, directory)
        self.output = directory

    async def select_assets(self, source_ids: Sequence[str]) -> None:
        self._record("select_assets", list(source_ids))
        self.selected = list(source_ids)

    async def start_export(self, profile: str) -> None:
        self._record("start_export", profile)
        self.exports += 1
        assert self.output is not None and self.hook is not None
        if self.fail_on_ids.intersection(self.selected):
            raise ScriptError("start_export", 1, "variant is offline")
        for source_id in self.selected:
            if source_id in self.drop_ids:
                continue
            stem = Path(self.filenames[source_id]).stem
            save_render(self.output / f"{stem}.jpg", shade=(self.exports * 37) % 256, label=f"{stem}:{self.exports}")
        for name in self.extra_renders:
            save_render(self.output / name, label=f"{name}:{self.exports}")
        if not self.fire_hook:
            return
        if self.token_override is not None:
            (self.hook.parent / SENTINEL_FILENAME).write_text(self.token_override)
        else:
            subprocess.run(["/bin/sh", str(self.hook)], check=True)

    @property
    def commands(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeLibrary:
    """Library stand-in that files imports straight into a destination catalog file."""

    def __init__(
        self,
        catalog_path: Path,
        *,
        added_at: float = 1_000_000.0,
        drop_stems: Iterable[str] = (),
        fail_command: Optional[str] = None,
    ) -> None:
        self.engine = _engine(catalog_path)
        self.added_at = added_at
        self.drop_stems = set(drop_stems)
        self.fail_command = fail_command
        self.calls: list[tuple] = []
        self._seen: set[tuple[str, str]] = set()

    def _record(self, command: str, *args) -> None:
        self.calls.append((command, *args))
        if command == self.fail_command:
            raise ScriptError(command, 1, "execution error")

    def _find(self, kind: int, name: str, parent_id: Optional[str]) -> Optional[str]:
        parent = destination_album.c.ZPARENTFOLDER
        condition = parent.is_(None) if parent_id is None else parent == int(parent_id)
        with self.engine.connect() as conn:
            pk = conn.execute(
                sa.select(destination_album.c.Z_PK).where(
                    destination_album.c.ZTITLE == name, destination_album.c.ZKIND == kind, condition
                )
            ).scalar()
        return str(pk) if pk is not None else None

    def _create(self, kind: int, name: str, parent_id: Optional[str]) -> str:
        with self.engine.begin() as conn:
            result = conn.execute(
                sa.insert(destination_album).values(
                    ZTITLE=name, ZKIND=kind, ZPARENTFOLDER=int(parent_id) if parent_id is not None else None
                )
            )
        return str(result.inserted_primary_key[0])

    def ensure_album_path(self, root: str, folder_path: str, album: str) -> str:
        parent = self._find(FOLDER_KIND, root, None) or self._create(FOLDER_KIND, root, None)
        for part in (p for p in folder_path.split("/") if p):
            parent = self._find(FOLDER_KIND, part, parent) or self._create(FOLDER_KIND, part, parent)
        return self._find(ALBUM_KIND, album, parent) or self._create(ALBUM_KIND, album, parent)

    def add_asset(self, album_pk: int, filename: str, added: Optional[float], *, uuid: Optional[str] = None, trashed: int = 0) -> None:
        with self.engine.begin() as conn:
            asset_pk = conn.execute(
                sa.insert(destination_asset).values(ZUUID=uuid or uuid4().hex, ZADDEDDATE=added, ZTRASHEDSTATE=trashed)
            ).inserted_primary_key[0]
            conn.execute(sa.insert(destination_attributes).values(ZASSET=asset_pk, ZORIGINALFILENAME=filename))
            conn.execute(sa.insert(destination_album_assets).values(ZALBUM=album_pk, ZASSET=asset_pk))

    async def find_folder(self, name: str, parent_id: Optional[str]) -> Optional[str]:
        self._record("find_folder", name, parent_id)
        return self._find(FOLDER_KIND, name, parent_id)

    async def create_folder(self, name: str, parent_id: Optional[str]) -> str:
        self._record("create_folder", name, parent_id)
        return self._create(FOLDER_KIND, name, parent_id)

    async def find_album(self, name: str, folder_id: str) -> Optional[str]:
        self._record("find_album", name, folder_id)
        return self._find(ALBUM_KIND, name, folder_id)

    async def create_album(self, name: str, folder_id: str) -> str:
        self._record("create_album", name, folder_id)
        return self._create(ALBUM_KIND, name, folder_id)

    async def import_files(self, paths: Sequence[Path], album_id: str) -> None:
        self._record("import_files", list(paths), album_id)
        for path in paths:
            if path.stem in self.drop_stems:
                continue
            digest = hashlib.sha1(path.read_bytes()).hexdigest()
            if (album_id, digest) in self._seen:
                continue
            self._seen.add((album_id, digest))
            self.add_asset(int(album_id), path.name, self.added_at)

    def dispose(self) -> None:
        self.engine.dispose()
