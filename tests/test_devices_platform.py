"""Tests for devices/platform.py - unmount, partition re-read, privileges."""

import sys
from unittest.mock import MagicMock, mock_open, patch

import pytest

from imagewriter.devices.lsblk import DeviceDiscoveryError
from imagewriter.devices.platform import (
    PlatformCommandError,
    build_reexec_command,
    is_privileged,
    mounted_partitions,
    reexec_privileged,
    reread_partition_table,
    unmount_partitions,
)
from imagewriter.types import DevicePath

LSBLK_MOUNTS = "\n".join(
    [
        'NAME="sdb" TYPE="disk" MOUNTPOINT="" PKNAME=""',
        'NAME="sdb1" TYPE="part" MOUNTPOINT="/media/u/BOOT" PKNAME="sdb"',
        'NAME="sdb2" TYPE="part" MOUNTPOINT="" PKNAME="sdb"',
        'NAME="sdb3" TYPE="part" MOUNTPOINT="/media/u/DATA" PKNAME="sdb"',
        'NAME="sdc1" TYPE="part" MOUNTPOINT="/media/u/OTHER" PKNAME="sdc"',
    ]
)


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestMountedPartitions:
    """Tests for mounted_partitions."""

    def test_lists_only_this_device(self) -> None:
        """Only mounted partitions of the requested disk are returned."""
        with patch(
            "imagewriter.devices.platform.run_lsblk", return_value=LSBLK_MOUNTS
        ):
            assert mounted_partitions(DevicePath("/dev/sdb")) == [
                "/media/u/BOOT",
                "/media/u/DATA",
            ]


class TestUnmountPartitions:
    """Tests for unmount_partitions."""

    def test_unmounts_each_mount_point(self) -> None:
        """Each mount point is unmounted independently."""
        with (
            patch(
                "imagewriter.devices.platform.run_lsblk", return_value=LSBLK_MOUNTS
            ),
            patch("subprocess.run", return_value=_completed()) as mock_run,
        ):
            report = unmount_partitions(DevicePath("/dev/sdb"))

        assert report.ok
        assert report.unmounted == ["/media/u/BOOT", "/media/u/DATA"]
        assert [c.args[0] for c in mock_run.call_args_list] == [
            ["umount", "/media/u/BOOT"],
            ["umount", "/media/u/DATA"],
        ]

    def test_partial_failure(self) -> None:
        """A busy mount point is reported and the others are still tried."""
        results = [_completed(32, stderr="target is busy"), _completed()]
        with (
            patch(
                "imagewriter.devices.platform.run_lsblk", return_value=LSBLK_MOUNTS
            ),
            patch("subprocess.run", side_effect=results),
        ):
            report = unmount_partitions(DevicePath("/dev/sdb"))

        assert not report.ok
        assert report.unmounted == ["/media/u/DATA"]
        assert "target is busy" in report.failed["/media/u/BOOT"]

    def test_listing_failure(self) -> None:
        """A failed partition listing is reported against the device."""
        error = DeviceDiscoveryError("lsblk not found", error_code="LSBLK_NOT_FOUND")
        with patch("imagewriter.devices.platform.run_lsblk", side_effect=error):
            report = unmount_partitions(DevicePath("/dev/sdb"))

        assert report.failed == {"/dev/sdb": "lsblk not found"}
        assert report.unmounted == []


class TestRereadPartitionTable:
    """Tests for reread_partition_table."""

    def test_partprobe_first(self) -> None:
        """partprobe is used when it succeeds."""
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            assert reread_partition_table(DevicePath("/dev/sdb")) == "partprobe"
        mock_run.assert_called_once()

    def test_fallback_to_blockdev(self) -> None:
        """blockdev --rereadpt is tried when partprobe is missing."""
        with patch(
            "subprocess.run", side_effect=[FileNotFoundError("partprobe"), _completed()]
        ) as mock_run:
            assert reread_partition_table(DevicePath("/dev/sdb")) == "blockdev"
        assert mock_run.call_args.args[0] == ["blockdev", "--rereadpt", "/dev/sdb"]

    def test_both_fail(self) -> None:
        """REREAD_FAILED is raised when both utilities fail."""
        with patch("subprocess.run", return_value=_completed(1, stderr="busy")):
            with pytest.raises(PlatformCommandError) as exc_info:
                reread_partition_table(DevicePath("/dev/sdb"))
        assert exc_info.value.error_code == "REREAD_FAILED"
        assert "busy" in exc_info.value.message


class TestIsPrivileged:
    """Tests for is_privileged."""

    def test_root_uid(self) -> None:
        status = "Name:\tpython\nUid:\t0\t0\t0\t0\n"
        with patch("builtins.open", mock_open(read_data=status)):
            assert is_privileged() is True

    def test_regular_uid(self) -> None:
        status = "Name:\tpython\nUid:\t1000\t0\t1000\t1000\n"
        with patch("builtins.open", mock_open(read_data=status)):
            assert is_privileged() is False

    def test_fallback_to_getuid(self) -> None:
        """os.getuid() is used when /proc is unavailable."""
        with (
            patch("builtins.open", side_effect=OSError("no proc")),
            patch("os.getuid", return_value=0),
        ):
            assert is_privileged() is True


class TestReexec:
    """Tests for privileged re-exec."""

    def test_build_command(self) -> None:
        """The original arguments are passed through after the interpreter."""
        cmd = build_reexec_command(["/usr/bin/imagewriter", "run"], "sudo")
        assert cmd == [
            "sudo",
            "-E",
            "--",
            sys.executable,
            "/usr/bin/imagewriter",
            "run",
        ]

    def test_exec_called(self) -> None:
        """os.execvp receives the elevation helper and the full command."""
        with patch("os.execvp", side_effect=OSError("stop")) as mock_exec:
            with pytest.raises(PlatformCommandError):
                reexec_privileged(["imagewriter"], "doas")
        assert mock_exec.call_args.args[0] == "doas"
        assert mock_exec.call_args.args[1][-1] == "imagewriter"

    def test_exec_failure(self) -> None:
        """A missing helper raises REEXEC_FAILED."""
        with patch("os.execvp", side_effect=FileNotFoundError("sudo")):
            with pytest.raises(PlatformCommandError) as exc_info:
                reexec_privileged(["imagewriter"])
        assert exc_info.value.error_code == "REEXEC_FAILED"
