from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterator, Mapping, NamedTuple
from uuid import uuid4


class NaturalKey(NamedTuple):
    """Folder + album + filename stem shared by a source asset and its exported copy."""

    folder_path: str
    album_name: str
    base_filename: str

    def __str__(self) -> str:
        parts = [self.folder_path, self.album_name, self.base_filename]
        return "/".join(part for part in parts if part)


@dataclass(slots=True, frozen=True)
class AssetRecord:
    key: NaturalKey
    source_id: str
    last_modified_at: datetime | None


@dataclass(slots=True, frozen=True)
class DestinationRecord:
    key: NaturalKey
    destination_id: str
    added_at: datetime | None


class MatchStatus(str, Enum):
    SOURCE_ONLY = "source_only"
    DEST_ONLY = "dest_only"
    MATCHED_UNCHANGED = "matched_unchanged"
    MATCHED_STALE = "matched_stale"


@dataclass(slots=True, frozen=True)
class MatchResult:
    statuses: Mapping[NaturalKey, MatchStatus]
    source_records: tuple[AssetRecord, ...] = ()

    def keys_with(self, status: MatchStatus) -> frozenset[NaturalKey]:
        return frozenset(key for key, value in self.statuses.items() if value is status)

    @property
    def source_only(self) -> frozenset[NaturalKey]:
        return self.keys_with(MatchStatus.SOURCE_ONLY)

    @property
    def dest_only(self) -> frozenset[NaturalKey]:
        return self.keys_with(MatchStatus.DEST_ONLY)

    @property
    def matched_unchanged(self) -> frozenset[NaturalKey]:
        return self.keys_with(MatchStatus.MATCHED_UNCHANGED)

    @property
    def matched_stale(self) -> frozenset[NaturalKey]:
        return self.keys_with(MatchStatus.MATCHED_STALE)

    def pending(self) -> list[AssetRecord]:
        """Source records that need an export or an update, in source order."""
        wanted = (MatchStatus.SOURCE_ONLY, MatchStatus.MATCHED_STALE)
        return [record for record in self.source_records if self.statuses[record.key] in wanted]

    def summary(self) -> dict[str, int]:
        counts = {status.value: 0 for status in MatchStatus}
        for status in self.statuses.values():
            counts[status.value] += 1
        return counts


def _new_token() -> str:
    return uuid4().hex


@dataclass(slots=True, frozen=True)
class Batch:
    batch_id: str
    items: tuple[AssetRecord, ...]
    correlation_token: str = field(default_factory=_new_token)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[AssetRecord]:
        return iter(self.items)

    @property
    def source_ids(self) -> list[str]:
        return [item.source_id for item in self.items]


@dataclass(slots=True)
class BatchOutcome:
    batch_id: str
    correlation_token: str
    produced_files: list[tuple[NaturalKey, Path]]
    expected_count: int
    actual_count: int
    work_dir: Path | None = None


@dataclass(slots=True)
class ImportReport:
    batch_id: str
    imported_files: int = 0
    folders_created: list[str] = field(default_factory=list)
    albums_created: list[str] = field(default_factory=list)
