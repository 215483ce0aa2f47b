"""One-way incremental sync from an editing catalog into a photo library."""

__version__ = "0.1.0"
