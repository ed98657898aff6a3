"""Tests for the terminal front-end: rendering and key decoding."""

import threading
from dataclasses import replace
from unittest.mock import MagicMock, patch

from rich.console import Console

from imagewriter.app.messages import Key
from imagewriter.app.model import Model
from imagewriter.types import (
    Device,
    DevicePath,
    ImageCandidate,
    ImagePath,
    JobOutcome,
    Screen,
    TransferProgress,
)
from imagewriter.ui.render import (
    device_label,
    done_summary,
    permission_hint,
    progress_line,
    render_model,
)
from imagewriter.ui.terminal import KeyReader, TerminalSession, decode_keys
from imagewriter.units import MIB


def _text(renderable) -> str:
    console = Console(width=120, record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


def _summary(model: Model) -> str:
    return "\n".join(line.plain for line in done_summary(model))


class TestPermissionHint:
    """Tests for the 'run as root' hint."""

    def test_unprivileged_always_hinted(self) -> None:
        assert permission_hint("Write error", privileged=False) is not None

    def test_privileged_permission_error(self) -> None:
        message = "Failed to open device /dev/sdb: [Errno 13] Permission denied"
        assert permission_hint(message, privileged=True) is not None

    def test_privileged_operation_not_permitted(self) -> None:
        assert permission_hint("Operation not permitted", privileged=True)

    def test_privileged_other_error(self) -> None:
        assert permission_hint("Mismatch", privileged=True) is None


class TestDoneSummary:
    """Tests for the result summary."""

    def test_success(self) -> None:
        model = Model(
            screen=Screen.DONE,
            privileged=True,
            write_outcome=JobOutcome.succeeded(),
            write_progress=TransferProgress(done=2 * MIB, total=2 * MIB),
        )
        text = _summary(model)
        assert "Write: succeeded" in text
        assert "2.0 MiB" in text
        assert "Hint" not in text

    def test_failure_shows_literal_message(self) -> None:
        model = Model(
            screen=Screen.DONE,
            privileged=True,
            write_outcome=JobOutcome.failed("Sync error on /dev/sdb: EIO"),
        )
        text = _summary(model)
        assert "Write failed: Sync error on /dev/sdb: EIO" in text
        assert "Hint" not in text

    def test_failure_with_permission_hint(self) -> None:
        model = Model(
            screen=Screen.DONE,
            privileged=False,
            write_outcome=JobOutcome.failed("Permission denied"),
        )
        assert "requires root" in _summary(model)

    def test_unknown(self) -> None:
        assert "Write: unknown" in _summary(Model(screen=Screen.DONE))

    def test_verify_and_warnings(self) -> None:
        model = Model(
            screen=Screen.DONE,
            privileged=True,
            write_outcome=JobOutcome.succeeded(),
            verify_outcome=JobOutcome.failed("Mismatch between image and device"),
            write_warnings=("Could not unmount /media/u/BOOT: busy",),
        )
        text = _summary(model)
        assert "Verify failed: Mismatch between image and device" in text
        assert "Warning: Could not unmount /media/u/BOOT: busy" in text


class TestRenderModel:
    """Tests for full-screen rendering."""

    def test_every_screen_renders(self) -> None:
        for screen in Screen:
            assert "imagewriter" in _text(render_model(Model(screen=screen)))

    def test_image_list(self) -> None:
        model = Model(
            query="deb",
            images=(ImageCandidate(ImagePath("/img/debian.iso"), 300 * MIB),),
            images_scanned=True,
        )
        text = _text(render_model(model))
        assert "Search: deb" in text
        assert "/img/debian.iso" in text
        assert "300.0 MiB" in text

    def test_no_images(self) -> None:
        text = _text(render_model(Model(images_scanned=True)))
        assert "No images found" in text

    def test_device_error_hint(self) -> None:
        model = Model(screen=Screen.DEVICE_SELECT, device_error="lsblk not found")
        assert "lsblk not found" in _text(render_model(model))

    def test_confirm_screen(self) -> None:
        device = Device(name="sdb", path=DevicePath("/dev/sdb"), size=16 * MIB)
        model = Model(
            screen=Screen.CONFIRM,
            image_chosen=ImagePath("/img/a.iso"),
            device_chosen=device.path,
            devices=(device,),
            confirm_text="YE",
        )
        text = _text(render_model(model))
        assert "/dev/sdb" in text
        assert "DESTROYED" in text
        assert "YE_" in text

    def test_notice_shown(self) -> None:
        model = Model(screen=Screen.CONFIRM, notice="sudo: command not found")
        assert "sudo: command not found" in _text(render_model(model))

    def test_writing_progress(self) -> None:
        model = Model(
            screen=Screen.WRITING,
            write_outcome=JobOutcome.pending(),
            write_progress=TransferProgress(done=50 * MIB, total=100 * MIB),
        )
        assert "50.0%" in _text(render_model(model))


class TestFormatting:
    """Tests for small formatting helpers."""

    def test_device_label(self) -> None:
        device = Device(
            name="sdb",
            path=DevicePath("/dev/sdb"),
            size=2 * MIB,
            model="Cruzer",
            transport="usb",
            mounted=True,
            labels=("BOOT", "rootfs"),
        )
        assert device_label(device) == (
            "/dev/sdb  2.0 MiB  Cruzer  USB  [BOOT, rootfs]  (mounted)"
        )

    def test_progress_line(self) -> None:
        progress = TransferProgress(done=MIB, total=4 * MIB, throughput=MIB)
        assert progress_line(progress).plain == (
            " 25.0%  1.0 MiB / 4.0 MiB  1.0 MiB/s  ETA 00:03"
        )

    def test_progress_line_unknown_eta(self) -> None:
        text = progress_line(replace(TransferProgress(), total=10)).plain
        assert text.endswith("ETA --:--")


class TestDecodeKeys:
    """Tests for terminal input decoding."""

    def test_printable(self) -> None:
        assert decode_keys("ab") == [Key("a"), Key("b")]

    def test_named_keys(self) -> None:
        assert decode_keys("\r\t\x7f") == [
            Key("enter"),
            Key("tab"),
            Key("backspace"),
        ]

    def test_arrows_and_backtab(self) -> None:
        assert decode_keys("\x1b[A\x1b[B\x1b[Z") == [
            Key("up"),
            Key("down"),
            Key("backtab"),
        ]

    def test_lone_escape(self) -> None:
        assert decode_keys("\x1b") == [Key("esc")]

    def test_control_keys(self) -> None:
        assert decode_keys("\x03\x13") == [
            Key("c", ctrl=True),
            Key("s", ctrl=True),
        ]

    def test_unknown_sequence_dropped(self) -> None:
        assert decode_keys("\x1b[15~x") == [Key("x")]


class TestKeyReader:
    """Tests for the stdin reader thread body."""

    def test_multibyte_split_across_reads(self) -> None:
        """A UTF-8 character arriving in two reads is still decoded."""
        posted: list = []
        reader = KeyReader(posted.append, fd=0, poll_interval=0.01)
        with (
            patch("select.select", return_value=([0], [], [])),
            patch("os.read", side_effect=[b"a\xc3", b"\xa9b", b""]),
        ):
            reader._run()
        assert posted == [Key("a"), Key("é"), Key("b")]


class TestTerminalSession:
    """Tests for the live display session."""

    def test_render_without_live_display(self) -> None:
        TerminalSession(Console(), fd=0).render(Model())

    def test_restore_waits_for_render(self) -> None:
        """A restore from another thread cannot pull the display mid-update."""
        session = TerminalSession(Console(), fd=0)
        live = MagicMock()
        session._live = live
        restorers: list[threading.Thread] = []
        blocked: list[bool] = []

        def update(*args, **kwargs) -> None:
            thread = threading.Thread(target=session.restore)
            thread.start()
            thread.join(timeout=0.05)
            blocked.append(thread.is_alive())
            restorers.append(thread)

        live.update.side_effect = update
        session.render(Model())
        restorers[0].join(timeout=1)

        assert blocked == [True]
        live.stop.assert_called_once()
        assert session._live is None
