"""Smoke tests for the CLI.

These tests verify basic CLI functionality without requiring root,
block devices, or an interactive terminal.
"""

import json
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from imagewriter import __version__
from imagewriter.cli import app
from imagewriter.devices.lsblk import DeviceDiscoveryError
from imagewriter.types import Device, DevicePath

runner = CliRunner()


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "imagewriter" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self) -> None:
        """CLI config should show configuration."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Block size" in result.stdout
        assert "Elevation command" in result.stdout

    def test_config_json(self) -> None:
        """CLI config --json should output valid JSON."""
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["image_extensions"] == ["iso", "img", "raw"]


class TestCLIDevices:
    """Test CLI devices command."""

    DEVICES = [
        Device(
            name="sdb",
            path=DevicePath("/dev/sdb"),
            size=16_000_000_000,
            model="Cruzer",
            transport="usb",
            removable=True,
            hotplug=True,
            labels=("BOOT",),
        )
    ]

    def test_devices_json(self) -> None:
        with patch(
            "imagewriter.devices.lsblk.probe_devices", return_value=self.DEVICES
        ):
            result = runner.invoke(app, ["devices", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data[0]["path"] == "/dev/sdb"
        assert data[0]["labels"] == ["BOOT"]

    def test_devices_table(self) -> None:
        with patch(
            "imagewriter.devices.lsblk.probe_devices", return_value=self.DEVICES
        ):
            result = runner.invoke(app, ["devices"])
        assert result.exit_code == 0
        assert "/dev/sdb" in result.stdout

    def test_no_devices(self) -> None:
        with patch("imagewriter.devices.lsblk.probe_devices", return_value=[]):
            result = runner.invoke(app, ["devices"])
        assert result.exit_code == 0
        assert "No writable devices" in result.stdout

    def test_discovery_failure(self) -> None:
        error = DeviceDiscoveryError("lsblk not found", error_code="LSBLK_NOT_FOUND")
        with patch("imagewriter.devices.lsblk.probe_devices", side_effect=error):
            result = runner.invoke(app, ["devices"])
        assert result.exit_code == 1
        assert "lsblk not found" in result.stdout


class TestCLIImages:
    """Test CLI images command."""

    def test_images_json(self, tmp_path: Path) -> None:
        (tmp_path / "debian.iso").write_bytes(b"x" * 10)
        (tmp_path / "small.img").write_bytes(b"x")
        result = runner.invoke(
            app,
            ["images", "--root", str(tmp_path), "--min-size", "5", "--json"],
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [Path(item["path"]).name for item in data] == ["debian.iso"]
        assert data[0]["size"] == 10

    def test_images_query(self, tmp_path: Path) -> None:
        (tmp_path / "debian.iso").write_bytes(b"x")
        (tmp_path / "ubuntu.iso").write_bytes(b"x")
        result = runner.invoke(
            app,
            ["images", "-r", str(tmp_path), "--min-size", "0", "-q", "ubu", "--json"],
        )
        assert result.exit_code == 0
        assert [Path(i["path"]).name for i in json.loads(result.stdout)] == [
            "ubuntu.iso"
        ]

    def test_no_images(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["images", "--root", str(tmp_path)])
        assert result.exit_code == 0
        assert "No images found" in result.stdout


class TestCLIRun:
    """Test CLI run command."""

    def test_requires_terminal(self) -> None:
        """Without a terminal on stdin the session refuses to start."""
        result = runner.invoke(app, ["run"])
        assert result.exit_code == 1
        assert "terminal" in result.stdout
