"""Platform helpers around a write: unmounting, partition re-read, privileges.

All helpers shell out to standard Linux utilities (lsblk, umount,
partprobe, blockdev, sudo). Unmount and partition re-read are best-effort:
callers report their failures but do not abort a write because of them.
"""

import logging
import os
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

from imagewriter.devices.lsblk import (
    DeviceDiscoveryError,
    parse_key_value_line,
    run_lsblk,
)
from imagewriter.types import DevicePath, UnmountReport

logger = logging.getLogger(__name__)

# Timeout for umount / partprobe / blockdev (seconds)
COMMAND_TIMEOUT = 60

PROC_STATUS = Path("/proc/self/status")


class PlatformCommandError(Exception):
    """An external platform utility failed."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


def _run(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    """Run a utility, raising PlatformCommandError if it cannot start or fails."""
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
            timeout=COMMAND_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise PlatformCommandError(
            f"{cmd[0]} could not be run: {e}", error_code="COMMAND_FAILED"
        ) from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        raise PlatformCommandError(
            f"{cmd[0]} exited with code {result.returncode}"
            + (f": {detail}" if detail else ""),
            error_code="COMMAND_FAILED",
        )
    return result


def mounted_partitions(device_path: DevicePath) -> list[str]:
    """List mount points of the partitions belonging to a device.

    Args:
        device_path: Whole-device path (e.g. /dev/sdb).

    Returns:
        Mount points in lsblk order.

    Raises:
        DeviceDiscoveryError: lsblk could not be run.
    """
    output = run_lsblk(("NAME", "TYPE", "MOUNTPOINT", "PKNAME"))
    mount_points: list[str] = []
    for line in output.splitlines():
        record = parse_key_value_line(line)
        if (
            record.get("TYPE") == "part"
            and record.get("PKNAME") == device_path.name
            and record.get("MOUNTPOINT")
        ):
            mount_points.append(record["MOUNTPOINT"])
    return mount_points


def unmount_partitions(device_path: DevicePath) -> UnmountReport:
    """Unmount every mounted partition of a device.

    Each mount point is attempted independently; failures are collected in
    the report instead of being raised.

    Args:
        device_path: Whole-device path.

    Returns:
        UnmountReport listing unmounted and failed mount points.
    """
    report = UnmountReport()
    try:
        mount_points = mounted_partitions(device_path)
    except DeviceDiscoveryError as e:
        logger.warning("Could not list partitions of %s: %s", device_path, e.message)
        report.failed[str(device_path)] = e.message
        return report

    for mount_point in mount_points:
        try:
            _run(["umount", mount_point])
        except PlatformCommandError as e:
            logger.warning("Failed to unmount %s: %s", mount_point, e.message)
            report.failed[mount_point] = e.message
        else:
            logger.info("Unmounted %s", mount_point)
            report.unmounted.append(mount_point)

    return report


def reread_partition_table(device_path: DevicePath) -> str:
    """Ask the kernel to re-read a device's partition table.

    Tries partprobe first, then `blockdev --rereadpt`.

    Args:
        device_path: Whole-device path.

    Returns:
        Name of the utility that succeeded.

    Raises:
        PlatformCommandError: Both utilities failed.
    """
    errors: list[str] = []
    for cmd in (
        ["partprobe", str(device_path)],
        ["blockdev", "--rereadpt", str(device_path)],
    ):
        try:
            _run(cmd)
        except PlatformCommandError as e:
            errors.append(e.message)
            continue
        logger.info("Partition table re-read via %s", cmd[0])
        return cmd[0]

    raise PlatformCommandError(
        f"Partition table re-read failed ({'; '.join(errors)})",
        error_code="REREAD_FAILED",
    )


def is_privileged() -> bool:
    """Return True when the process runs with real UID 0.

    Reads the real UID from /proc/self/status, falling back to os.getuid().
    """
    try:
        with open(PROC_STATUS) as f:
            for line in f:
                if line.startswith("Uid:"):
                    fields = line.split()
                    return len(fields) > 1 and fields[1] == "0"
    except OSError:
        logger.debug("Could not read %s, falling back to getuid()", PROC_STATUS)

    getuid = getattr(os, "getuid", None)
    return getuid is not None and getuid() == 0


def build_reexec_command(
    argv: Sequence[str], elevation_command: str = "sudo"
) -> list[str]:
    """Compose the command that re-runs this process with elevated privileges.

    Args:
        argv: Original process arguments (sys.argv), passed through unchanged.
        elevation_command: Privilege helper program.

    Returns:
        Command as a list suitable for os.execvp.
    """
    return [elevation_command, "-E", "--", sys.executable, *argv]


def reexec_privileged(
    argv: Sequence[str], elevation_command: str = "sudo"
) -> NoReturn:
    """Replace the current process with a privileged copy of itself.

    Only returns by raising; on success the process image is replaced.

    Raises:
        PlatformCommandError: The elevation helper could not be executed.
    """
    cmd = build_reexec_command(argv, elevation_command)
    logger.info("Re-executing with elevated privileges: %s", " ".join(cmd))
    try:
        os.execvp(cmd[0], cmd)
    except OSError as e:
        raise PlatformCommandError(
            f"Failed to exec {elevation_command}: {e}", error_code="REEXEC_FAILED"
        ) from e
    raise PlatformCommandError(  # pragma: no cover - execvp never returns
        f"Failed to exec {elevation_command}", error_code="REEXEC_FAILED"
    )


__all__ = [
    "PlatformCommandError",
    "build_reexec_command",
    "is_privileged",
    "mounted_partitions",
    "reexec_privileged",
    "reread_partition_table",
    "unmount_partitions",
]
