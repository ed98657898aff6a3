"""Block device discovery via lsblk.

This module handles:
- Running lsblk with a fixed column set in key/value (-P) mode
- Parsing its KEY="VALUE" lines with an error-tolerant tokenizer
- Aggregating partition facts (mounts, labels) onto their parent disks
- Filtering out loop, read-only and root-hosting disks
- Ranking the remaining disks for display

Discovery is polled repeatedly, so failures degrade to an empty list
rather than raising (see discover()).
"""

import logging
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass, field

from imagewriter.types import Device, DevicePath

logger = logging.getLogger(__name__)

LSBLK_COLUMNS = (
    "NAME",
    "TYPE",
    "SIZE",
    "RM",
    "RO",
    "MODEL",
    "SERIAL",
    "TRAN",
    "HOTPLUG",
    "MOUNTPOINT",
    "PKNAME",
    "LABEL",
)

DEVICE_DIR = "/dev"
ROOT_MOUNTPOINT = "/"

# Timeout for a single lsblk invocation (seconds)
LSBLK_TIMEOUT = 15


class DeviceDiscoveryError(Exception):
    """Raised when lsblk cannot be run or its output cannot be used."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


@dataclass
class _DiskAggregate:
    size: int = 0
    removable: bool = False
    read_only: bool = False
    hotplug: bool = False
    model: str | None = None
    serial: str | None = None
    transport: str | None = None
    any_mounted: bool = False
    hosts_root: bool = False
    labels: list[str] = field(default_factory=list)


def build_lsblk_command(columns: Iterable[str] = LSBLK_COLUMNS) -> list[str]:
    """Compose the lsblk command line (pairs output, sizes in bytes)."""
    return ["lsblk", "-P", "-b", "-o", ",".join(columns)]


def run_lsblk(columns: Iterable[str] = LSBLK_COLUMNS) -> str:
    """Run lsblk and return its standard output.

    Args:
        columns: lsblk columns to request.

    Returns:
        Decoded stdout (undecodable bytes replaced).

    Raises:
        DeviceDiscoveryError: lsblk is missing, timed out or exited non-zero.
    """
    cmd = build_lsblk_command(columns)
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            check=False,
            timeout=LSBLK_TIMEOUT,
        )
    except FileNotFoundError as e:
        raise DeviceDiscoveryError(
            f"lsblk not found: {e}", error_code="LSBLK_NOT_FOUND"
        ) from e
    except subprocess.TimeoutExpired as e:
        raise DeviceDiscoveryError(
            f"lsblk timed out after {LSBLK_TIMEOUT}s", error_code="LSBLK_TIMEOUT"
        ) from e
    except OSError as e:
        raise DeviceDiscoveryError(
            f"lsblk failed to start: {e}", error_code="LSBLK_FAILED"
        ) from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise DeviceDiscoveryError(
            f"lsblk exited with code {result.returncode}: {stderr}",
            error_code="LSBLK_FAILED",
        )

    return result.stdout.decode("utf-8", errors="replace")


def parse_key_value_line(line: str) -> dict[str, str]:
    """Parse one line of `lsblk -P` output into a mapping.

    The format is a sequence of KEY="VALUE" pairs separated by whitespace.
    Parsing is error tolerant: a trailing token without '=' is dropped and
    an unterminated quoted value runs to the end of the line.

    Args:
        line: A single output line.

    Returns:
        Mapping of key to (unquoted) value.
    """
    out: dict[str, str] = {}
    i = 0
    n = len(line)
    while i < n:
        while i < n and line[i].isspace():
            i += 1
        if i >= n:
            break

        start = i
        while i < n and line[i] != "=":
            i += 1
        if i >= n:
            # Key without '=' - malformed tail
            break
        key = line[start:i].strip()
        i += 1

        if i < n and line[i] == '"':
            i += 1
        value_start = i
        while i < n and line[i] != '"':
            i += 1
        value = line[value_start:i]
        if i < n and line[i] == '"':
            i += 1

        if key:
            out[key] = value
    return out


def _flag(record: dict[str, str], key: str) -> bool:
    return record.get(key, "").strip() == "1"


def _optional(record: dict[str, str], key: str) -> str | None:
    value = record.get(key, "").strip()
    return value or None


def _size(record: dict[str, str]) -> int:
    try:
        return int(record.get("SIZE", "0"))
    except ValueError:
        return 0


def _partition_label(label: str, mountpoint: str) -> str:
    """Return the partition label, falling back to the mount point name."""
    if label:
        return label
    if mountpoint:
        return mountpoint.rstrip("/").rsplit("/", 1)[-1]
    return ""


def aggregate_devices(records: Iterable[dict[str, str]]) -> list[Device]:
    """Aggregate parsed lsblk records into filtered, ranked devices.

    Disk records seed one aggregate per name; partition records attach to
    their parent via PKNAME. Loop devices, read-only disks and disks hosting
    the root filesystem are excluded.

    Args:
        records: Parsed lsblk records (see parse_key_value_line).

    Returns:
        Devices sorted by rank_devices().
    """
    records = [r for r in records if r.get("NAME")]

    disks: dict[str, _DiskAggregate] = {}
    for record in records:
        if record.get("TYPE") != "disk":
            continue
        disks[record["NAME"]] = _DiskAggregate(
            size=_size(record),
            removable=_flag(record, "RM"),
            read_only=_flag(record, "RO"),
            hotplug=_flag(record, "HOTPLUG"),
            model=_optional(record, "MODEL"),
            serial=_optional(record, "SERIAL"),
            transport=_optional(record, "TRAN"),
        )

    for record in records:
        if record.get("TYPE") != "part":
            continue
        parent = disks.get(record.get("PKNAME", ""))
        if parent is None:
            continue

        mountpoint = record.get("MOUNTPOINT", "")
        if mountpoint:
            parent.any_mounted = True
            if mountpoint == ROOT_MOUNTPOINT:
                parent.hosts_root = True

        label = _partition_label(record.get("LABEL", ""), mountpoint)
        if label and label not in parent.labels:
            parent.labels.append(label)

    devices: list[Device] = []
    for name, agg in disks.items():
        if name.startswith("loop"):
            continue
        if agg.read_only:
            logger.debug("Skipping read-only device %s", name)
            continue
        if agg.hosts_root:
            logger.debug("Skipping system root device %s", name)
            continue
        devices.append(
            Device(
                name=name,
                path=DevicePath(f"{DEVICE_DIR}/{name}"),
                size=agg.size,
                model=agg.model,
                serial=agg.serial,
                transport=agg.transport,
                removable=agg.removable,
                hotplug=agg.hotplug,
                read_only=False,
                mounted=agg.any_mounted,
                labels=tuple(agg.labels),
            )
        )

    return rank_devices(devices)


def rank_devices(devices: Iterable[Device]) -> list[Device]:
    """Sort devices: hotplug first, removable first, unmounted first, then name."""
    return sorted(
        devices,
        key=lambda d: (not d.hotplug, not d.removable, d.mounted, d.name),
    )


def parse_lsblk_output(output: str) -> list[Device]:
    """Parse full `lsblk -P` output into devices."""
    return aggregate_devices(
        parse_key_value_line(line) for line in output.splitlines() if line.strip()
    )


def probe_devices() -> list[Device]:
    """Discover writable block devices.

    Returns:
        Ranked list of devices.

    Raises:
        DeviceDiscoveryError: lsblk could not be run.
    """
    devices = parse_lsblk_output(run_lsblk())
    logger.info("Discovered %d writable device(s)", len(devices))
    return devices


def discover() -> list[Device]:
    """Discover writable block devices, treating any failure as none found.

    Returns:
        Ranked list of devices (empty if lsblk failed).
    """
    try:
        return probe_devices()
    except DeviceDiscoveryError as e:
        logger.warning("Device discovery failed: %s", e.message)
        return []


__all__ = [
    "LSBLK_COLUMNS",
    "DeviceDiscoveryError",
    "aggregate_devices",
    "build_lsblk_command",
    "discover",
    "parse_key_value_line",
    "parse_lsblk_output",
    "probe_devices",
    "rank_devices",
    "run_lsblk",
]
