"""imagewriter - find disk images and write them to removable block devices.

This package provides device and image discovery, a write/verify pipeline
for raw block devices, and the reducer-driven terminal workflow that ties
them together.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
