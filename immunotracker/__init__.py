"""Immunisation Tracker - child vaccination due status with offline-first sync."""

__version__ = "3.0.0"
__author__ = "Immunisation Tracker Team"
__description__ = "Child immunisation due-status engine with offline cache and sync queue"

# Package metadata
__all__ = [
    "__author__",
    "__description__",
    "__version__",
]
