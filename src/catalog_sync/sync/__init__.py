"""Export/import coordination and the run driver."""

from .driver import DegradedBatch, RunReport, RunState, SyncDriver
from .exporter import ExportCoordinator
from .importer import ImportCoordinator
from .sentinel import SentinelWatcher, write_hook_script

__all__ = [
    "DegradedBatch",
    "ExportCoordinator",
    "ImportCoordinator",
    "RunReport",
    "RunState",
    "SentinelWatcher",
    "SyncDriver",
    "write_hook_script",
]
