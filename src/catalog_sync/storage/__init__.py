"""Read-only access to the editor and library catalogs."""

from .reader import from_catalog_timestamp, primary_variant, read_destination, read_source
from .snapshot import catalog_snapshot

__all__ = ["catalog_snapshot", "from_catalog_timestamp", "primary_variant", "read_destination", "read_source"]
