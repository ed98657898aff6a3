"""Shared type definitions for imagewriter.

This module contains the value types shared across subpackages to avoid
circular imports: typed path wrappers, discovered devices and images,
transfer progress and job outcomes.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class Screen(str, Enum):
    """Screens of the interactive workflow."""

    IMAGE_SEARCH = "image-search"
    DEVICE_SELECT = "device-select"
    CONFIRM = "confirm"
    WRITING = "writing"
    DONE = "done"


class JobStatus(str, Enum):
    """Status of a write or verify job."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True, order=True)
class _TypedPath:
    """Base for path wrappers that must not be mixed up with each other.

    Equality and ordering are only defined between instances of the same
    wrapper class, so a DevicePath never equals an ImagePath even when both
    wrap the same filesystem path.
    """

    path: Path

    def __post_init__(self) -> None:
        if not isinstance(self.path, Path):
            object.__setattr__(self, "path", Path(self.path))

    def __fspath__(self) -> str:
        return os.fspath(self.path)

    def __str__(self) -> str:
        return str(self.path)

    @property
    def name(self) -> str:
        """Final path component."""
        return self.path.name


@dataclass(frozen=True, order=True)
class DevicePath(_TypedPath):
    """Path to a block device node (e.g. /dev/sdb)."""


@dataclass(frozen=True, order=True)
class ImagePath(_TypedPath):
    """Path to a disk image file."""


@dataclass(frozen=True, order=True)
class DirectoryPath(_TypedPath):
    """Path to a directory scanned for images."""

    def canonical(self) -> "DirectoryPath":
        """Return the directory with symlinks and relative segments resolved.

        Falls back to the path unchanged when it cannot be resolved.
        """
        try:
            return DirectoryPath(self.path.resolve(strict=True))
        except OSError:
            return self

    def join(self, *parts: str) -> "DirectoryPath":
        """Return a child directory path."""
        return DirectoryPath(self.path.joinpath(*parts))


@dataclass(frozen=True)
class Device:
    """A writable whole-disk block device.

    Attributes:
        name: Kernel name (e.g. 'sdb', 'mmcblk0').
        path: Device node path.
        size: Size in bytes.
        model: Model string reported by the device.
        serial: Serial number reported by the device.
        transport: Transport (usb, sata, nvme, ...).
        removable: Whether the kernel flags the media as removable.
        hotplug: Whether the device is hot-pluggable.
        read_only: Always False for listed devices.
        mounted: Whether any partition is currently mounted.
        labels: Partition labels (or mount point names), insertion ordered.
    """

    name: str
    path: DevicePath
    size: int
    model: str | None = None
    serial: str | None = None
    transport: str | None = None
    removable: bool = False
    hotplug: bool = False
    read_only: bool = False
    mounted: bool = False
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImageCandidate:
    """A disk image found by a directory scan."""

    path: ImagePath
    size: int
    modified: datetime | None = None


@dataclass(frozen=True)
class TransferProgress:
    """Byte progress of a write or verify job."""

    done: int = 0
    total: int = 0
    throughput: float = 0.0

    @property
    def percent(self) -> float:
        """Completion in percent, clamped to 0-100."""
        if self.total <= 0:
            return 0.0
        return max(0.0, min(100.0, self.done / self.total * 100.0))

    @property
    def eta_seconds(self) -> float | None:
        """Estimated seconds remaining, or None if unknown."""
        if self.throughput <= 0 or self.total <= 0:
            return None
        return max(0, self.total - self.done) / self.throughput


@dataclass(frozen=True)
class JobOutcome:
    """Outcome of a write or verify job."""

    status: JobStatus
    message: str | None = None

    @classmethod
    def pending(cls) -> "JobOutcome":
        return cls(JobStatus.PENDING)

    @classmethod
    def succeeded(cls) -> "JobOutcome":
        return cls(JobStatus.SUCCEEDED)

    @classmethod
    def failed(cls, message: str) -> "JobOutcome":
        return cls(JobStatus.FAILED, message)

    @property
    def is_pending(self) -> bool:
        return self.status == JobStatus.PENDING

    @property
    def is_success(self) -> bool:
        return self.status == JobStatus.SUCCEEDED

    @property
    def is_failure(self) -> bool:
        return self.status == JobStatus.FAILED


@dataclass(frozen=True)
class UnmountReport:
    """Per-mount-point results of unmounting a device's partitions."""

    unmounted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


__all__ = [
    "Device",
    "DevicePath",
    "DirectoryPath",
    "ImageCandidate",
    "ImagePath",
    "JobOutcome",
    "JobStatus",
    "Screen",
    "TransferProgress",
    "UnmountReport",
]
