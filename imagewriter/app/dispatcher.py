"""Command dispatcher.

The Dispatcher is the only component that performs I/O on behalf of the
reducer. Each command runs on its own daemon thread; every resulting
message is put on a single inbound queue that the event loop drains one
message at a time, so state mutation stays on the loop thread.
"""

import logging
import queue
import sys
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence

from imagewriter.app import messages as m
from imagewriter.app.commands import (
    Cmd,
    RefreshDevices,
    ReexecPrivileged,
    ScanImages,
    VerifyImage,
    WriteImage,
)
from imagewriter.config import Settings, get_settings
from imagewriter.devices.lsblk import DeviceDiscoveryError, probe_devices
from imagewriter.devices.platform import PlatformCommandError, reexec_privileged
from imagewriter.flash.events import (
    JobEvent,
    JobFinished,
    JobProgress,
    JobStarted,
    JobWarning,
)
from imagewriter.flash.writer import verify_image, write_image
from imagewriter.images.scanner import scan_default_roots

logger = logging.getLogger(__name__)

INTERNAL_ERROR_PREFIX = "Internal error"


class Dispatcher:
    """Run commands in background threads and collect their messages.

    Attributes:
        inbox: Multi-producer queue of messages for the event loop.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        inbox: "queue.Queue[m.Msg] | None" = None,
        argv: Sequence[str] | None = None,
        before_exec: Callable[[], None] | None = None,
        after_exec_failed: Callable[[], None] | None = None,
    ) -> None:
        """Create a dispatcher.

        Args:
            settings: Application settings (scan limits, block size, ...).
            inbox: Queue to post messages on; a new one is created if omitted.
            argv: Arguments passed through on privileged re-exec.
            before_exec: Called right before the process image is replaced,
                e.g. to restore the terminal.
            after_exec_failed: Called when the re-exec did not happen, e.g.
                to put the terminal back into interactive mode.
        """
        self.settings = settings or get_settings()
        self.inbox: queue.Queue[m.Msg] = inbox if inbox is not None else queue.Queue()
        self.argv = list(argv) if argv is not None else list(sys.argv)
        self.before_exec = before_exec
        self.after_exec_failed = after_exec_failed

    def post(self, msg: m.Msg) -> None:
        """Put a message on the inbound queue (thread safe)."""
        self.inbox.put(msg)

    def dispatch(self, cmds: Iterable[Cmd]) -> list[threading.Thread]:
        """Start one background thread per command.

        Args:
            cmds: Commands returned by the reducer.

        Returns:
            The started threads.
        """
        threads = []
        for cmd in cmds:
            target, on_crash = self._route(cmd)
            thread = threading.Thread(
                target=self._guard,
                args=(target, on_crash),
                name=f"imagewriter-{type(cmd).__name__}",
                daemon=True,
            )
            logger.debug("Dispatching %s", cmd)
            thread.start()
            threads.append(thread)
        return threads

    def _route(
        self, cmd: Cmd
    ) -> tuple[Callable[[], None], Callable[[str], m.Msg]]:
        if isinstance(cmd, ScanImages):
            return (lambda: self._scan_images(cmd)), m.ImageScanFailed
        if isinstance(cmd, RefreshDevices):
            return self._refresh_devices, m.DevicesRefreshFailed
        if isinstance(cmd, WriteImage):
            return (lambda: self._write(cmd)), (lambda e: m.WriteFinished(error=e))
        if isinstance(cmd, VerifyImage):
            return (lambda: self._verify(cmd)), (lambda e: m.VerifyFinished(error=e))
        if isinstance(cmd, ReexecPrivileged):
            return self._reexec, m.ElevationFailed
        raise TypeError(f"Unknown command: {cmd!r}")

    def _guard(
        self, target: Callable[[], None], on_crash: Callable[[str], m.Msg]
    ) -> None:
        """Run a unit of work, turning unexpected exceptions into a message.

        The message text starts with 'Internal error' so it cannot be
        mistaken for an I/O failure reported by the job itself.
        """
        try:
            target()
        except Exception as e:
            logger.exception("Background task crashed")
            self.post(on_crash(f"{INTERNAL_ERROR_PREFIX}: {type(e).__name__}: {e}"))

    def _scan_images(self, cmd: ScanImages) -> None:
        results = scan_default_roots(
            cmd.query,
            max_depth=self.settings.scan_max_depth,
            min_size=self.settings.min_image_size,
            extensions=self.settings.image_extensions,
        )
        self.post(m.ImagesScanned(results=tuple(results)))

    def _refresh_devices(self) -> None:
        try:
            devices = probe_devices()
        except DeviceDiscoveryError as e:
            logger.warning("Device refresh failed: %s", e.message)
            self.post(m.DevicesRefreshFailed(message=e.message))
            return
        self.post(m.DevicesRefreshed(devices=tuple(devices)))

    def _forward(
        self,
        events: Iterator[JobEvent],
        started: Callable[[int], m.Msg],
        progress: Callable[[int, int, float], m.Msg],
        finished: Callable[[str | None], m.Msg],
        warning: Callable[[str], m.Msg] | None = None,
    ) -> None:
        for event in events:
            if isinstance(event, JobStarted):
                self.post(started(event.total))
            elif isinstance(event, JobProgress):
                self.post(progress(event.done, event.total, event.throughput))
            elif isinstance(event, JobWarning):
                if warning is not None:
                    self.post(warning(event.message))
                else:
                    logger.warning("%s", event.message)
            elif isinstance(event, JobFinished):
                self.post(finished(event.error))
                return
        raise RuntimeError("job ended without a finished event")

    def _write(self, cmd: WriteImage) -> None:
        self._forward(
            write_image(cmd.image, cmd.device, block_size=self.settings.block_size),
            started=m.WriteStarted,
            progress=m.WriteProgress,
            finished=m.WriteFinished,
            warning=m.WriteWarning,
        )

    def _verify(self, cmd: VerifyImage) -> None:
        self._forward(
            verify_image(
                cmd.image,
                cmd.device,
                cmd.size,
                block_size=self.settings.block_size,
            ),
            started=m.VerifyStarted,
            progress=m.VerifyProgress,
            finished=m.VerifyFinished,
        )

    def _reexec(self) -> None:
        if self.before_exec is not None:
            self.before_exec()
        try:
            reexec_privileged(self.argv, self.settings.elevation_command)
        except PlatformCommandError as e:
            logger.error("Privileged re-exec failed: %s", e.message)
            if self.after_exec_failed is not None:
                self.after_exec_failed()
            self.post(m.ElevationFailed(message=e.message))


__all__ = ["INTERNAL_ERROR_PREFIX", "Dispatcher"]
