from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Any, Mapping, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from ..errors import SchemaMismatch
from ..pipeline.interfaces import VariantPolicy
from ..pipeline.models import AssetRecord, DestinationRecord, NaturalKey
from .schemas import (
    ALBUM_KIND,
    DESTINATION_TABLES,
    FOLDER_KIND,
    SOURCE_TABLES,
    destination_album,
    destination_album_assets,
    destination_asset,
    destination_attributes,
    source_album,
    source_album_image,
    source_folder,
    source_image,
    source_variant,
)

logger = logging.getLogger("catalog_sync.storage.reader")

CATALOG_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)


def from_catalog_timestamp(value: Any) -> Optional[datetime]:
    """Convert seconds since 2001-01-01 UTC into an aware datetime, or None."""
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds):
        return None
    try:
        return CATALOG_EPOCH + timedelta(seconds=seconds)
    except OverflowError:
        return None


def verify_schema(engine: Engine, expected: Mapping[str, set[str]], catalog: str) -> None:
    inspector = sa.inspect(engine)
    present = set(inspector.get_table_names())
    missing: list[str] = []
    for table, columns in expected.items():
        if table not in present:
            missing.append(table)
            continue
        found = {column["name"] for column in inspector.get_columns(table)}
        missing.extend(f"{table}.{name}" for name in sorted(columns - found))
    if missing:
        logger.error({"event": "storage.schema_mismatch", "catalog": catalog, "missing": missing})
        raise SchemaMismatch(catalog, missing)


def primary_variant(image_pk: int, variants: Sequence[Any]) -> Any:
    """Keep the primary variant: lowest position, then lowest primary key."""
    return min(
        variants,
        key=lambda row: (row.ZPOSITION is None, row.ZPOSITION or 0, row.Z_PK),
    )


def _resolve_path(folder_pk: Optional[int], folders: Mapping[int, tuple[str, Optional[int]]], stop: Optional[int] = None) -> Optional[list[str]]:
    """Walk parent links up to ``stop`` (or the top). None if ``stop`` is never reached."""
    parts: list[str] = []
    seen: set[int] = set()
    current = folder_pk
    while current is not None and current != stop:
        if current in seen or current not in folders:
            return None if stop is not None else parts[::-1]
        seen.add(current)
        name, parent = folders[current]
        parts.append(name or "")
        current = parent
    if stop is not None and current != stop:
        return None
    return parts[::-1]


def _stem(filename: Optional[str]) -> str:
    return PurePosixPath(filename or "").stem


def read_source(engine: Engine, variant_policy: VariantPolicy = primary_variant) -> list[AssetRecord]:
    """Read one record per (album membership, image) from an editor catalog copy."""
    verify_schema(engine, SOURCE_TABLES, "source")

    with engine.connect() as conn:
        folders = {
            row.Z_PK: (row.ZNAME, row.ZPARENT)
            for row in conn.execute(sa.select(source_folder.c.Z_PK, source_folder.c.ZNAME, source_folder.c.ZPARENT))
        }
        memberships = conn.execute(
            sa.select(
                source_album.c.ZNAME.label("album_name"),
                source_album.c.ZFOLDER.label("folder_pk"),
                source_image.c.Z_PK.label("image_pk"),
                source_image.c.ZFILENAME.label("filename"),
            )
            .select_from(source_album_image)
            .join(source_album, source_album.c.Z_PK == source_album_image.c.ZALBUM)
            .join(source_image, source_image.c.Z_PK == source_album_image.c.ZIMAGE)
        ).all()
        variants_by_image: dict[int, list[Any]] = {}
        for row in conn.execute(sa.select(source_variant)):
            variants_by_image.setdefault(row.ZIMAGE, []).append(row)

    records: list[AssetRecord] = []
    skipped = 0
    for row in memberships:
        variants = variants_by_image.get(row.image_pk)
        if not variants:
            skipped += 1
            continue
        chosen = variant_policy(row.image_pk, variants)
        folder_parts = _resolve_path(row.folder_pk, folders) or []
        key = NaturalKey(
            folder_path="/".join(folder_parts),
            album_name=row.album_name or "",
            base_filename=_stem(row.filename),
        )
        records.append(
            AssetRecord(
                key=key,
                source_id=str(chosen.ZUUID),
                last_modified_at=from_catalog_timestamp(chosen.ZMODIFICATIONDATE),
            )
        )

    records.sort(key=lambda record: (record.key, record.source_id))
    if skipped:
        logger.warning({"event": "storage.source.no_variant", "skipped": skipped})
    logger.info({"event": "storage.source.read", "records": len(records)})
    return records


def _find_root(folders: Mapping[int, tuple[str, Optional[int]]], root_folder: str) -> Optional[int]:
    candidates = sorted(
        pk for pk, (title, parent) in folders.items() if title == root_folder and (parent is None or parent not in folders or not folders[parent][0])
    )
    if len(candidates) > 1:
        logger.warning({"event": "storage.destination.ambiguous_root", "root": root_folder, "using": candidates[0]})
    return candidates[0] if candidates else None


def read_destination(engine: Engine, root_folder: str) -> list[DestinationRecord]:
    """Read library assets filed under ``root_folder``, one record per natural key.

    Re-importing an edited render adds a second asset with the same name, so
    several assets can share a key; the most recently added one wins.
    """
    verify_schema(engine, DESTINATION_TABLES, "destination")

    with engine.connect() as conn:
        containers = conn.execute(
            sa.select(
                destination_album.c.Z_PK,
                destination_album.c.ZTITLE,
                destination_album.c.ZKIND,
                destination_album.c.ZPARENTFOLDER,
            )
        ).all()
        folders = {row.Z_PK: (row.ZTITLE, row.ZPARENTFOLDER) for row in containers if row.ZKIND == FOLDER_KIND}
        root_pk = _find_root(folders, root_folder)
        if root_pk is None:
            logger.info({"event": "storage.destination.no_root", "root": root_folder})
            return []

        album_paths: dict[int, tuple[str, str]] = {}
        for row in containers:
            if row.ZKIND != ALBUM_KIND:
                continue
            parts = _resolve_path(row.ZPARENTFOLDER, folders, stop=root_pk)
            if parts is None:
                continue
            album_paths[row.Z_PK] = ("/".join(parts), row.ZTITLE or "")

        trashed = sa.func.coalesce(destination_asset.c.ZTRASHEDSTATE, 0)
        assets = conn.execute(
            sa.select(
                destination_album_assets.c.ZALBUM.label("album_pk"),
                destination_asset.c.ZUUID.label("uuid"),
                destination_asset.c.ZADDEDDATE.label("added"),
                destination_attributes.c.ZORIGINALFILENAME.label("filename"),
            )
            .select_from(destination_album_assets)
            .join(destination_asset, destination_asset.c.Z_PK == destination_album_assets.c.ZASSET)
            .join(destination_attributes, destination_attributes.c.ZASSET == destination_asset.c.Z_PK)
            .where(trashed == 0)
        ).all()

    by_key: dict[NaturalKey, DestinationRecord] = {}
    collapsed = 0
    floor = datetime.min.replace(tzinfo=timezone.utc)
    for row in assets:
        location = album_paths.get(row.album_pk)
        if location is None:
            continue
        key = NaturalKey(folder_path=location[0], album_name=location[1], base_filename=_stem(row.filename))
        record = DestinationRecord(key=key, destination_id=str(row.uuid), added_at=from_catalog_timestamp(row.added))
        existing = by_key.get(key)
        if existing is not None:
            collapsed += 1
            if (existing.added_at or floor) >= (record.added_at or floor):
                continue
        by_key[key] = record

    if collapsed:
        logger.info({"event": "storage.destination.collapsed_duplicates", "count": collapsed})
    records = sorted(by_key.values(), key=lambda record: record.key)
    logger.info({"event": "storage.destination.read", "records": len(records)})
    return records
