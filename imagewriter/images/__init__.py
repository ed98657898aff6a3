"""Disk image discovery.

Finds .iso/.img/.raw files below the working directory and the user's
home and Downloads directories.
"""

from imagewriter.images.scanner import (
    IMAGE_EXTENSIONS,
    default_roots,
    normalize_roots,
    scan,
    scan_default_roots,
)

__all__ = [
    "IMAGE_EXTENSIONS",
    "default_roots",
    "normalize_roots",
    "scan",
    "scan_default_roots",
]
