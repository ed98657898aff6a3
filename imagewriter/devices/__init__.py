"""Block device discovery and device-level platform helpers.

This module handles:
- Listing writable whole-disk devices via lsblk
- Unmounting a device's partitions before a write
- Re-reading the partition table after a write
- Privilege detection and privileged re-exec

Safety rules:
- Loop devices, read-only devices and the disk hosting / are never listed
- Discovery failures degrade to an empty device list
"""

from imagewriter.devices.lsblk import (
    DeviceDiscoveryError,
    discover,
    parse_key_value_line,
    probe_devices,
    rank_devices,
)
from imagewriter.devices.platform import (
    PlatformCommandError,
    is_privileged,
    reexec_privileged,
    reread_partition_table,
    unmount_partitions,
)

__all__ = [
    # Discovery
    "DeviceDiscoveryError",
    "discover",
    "parse_key_value_line",
    "probe_devices",
    "rank_devices",
    # Platform
    "PlatformCommandError",
    "is_privileged",
    "reexec_privileged",
    "reread_partition_table",
    "unmount_partitions",
]
