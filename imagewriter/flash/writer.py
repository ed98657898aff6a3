"""Writer module for raw block devices.

This module handles the actual byte pipeline:
- Write an image to a device with flush + fsync
- Byte-for-byte verification of the device against the image

Both jobs are generators of imagewriter.flash.events, so callers can
forward live progress while the copy runs. Errors never escape a job;
they end the stream with JobFinished(error=message).
"""

import logging
import os
import time
from collections.abc import Callable, Iterator
from typing import BinaryIO

from imagewriter.devices.platform import (
    PlatformCommandError,
    reread_partition_table,
    unmount_partitions,
)
from imagewriter.flash.events import (
    JobEvent,
    JobFinished,
    JobProgress,
    JobStarted,
    JobWarning,
)
from imagewriter.types import DevicePath, ImagePath
from imagewriter.units import MIB

logger = logging.getLogger(__name__)

# Default block size for I/O operations (4 MiB)
DEFAULT_BLOCK_SIZE = 4 * MIB

# Floor for elapsed time so throughput at t=0 stays finite
MIN_ELAPSED = 1e-6

# Log progress every 64 MiB
_LOG_EVERY = 64 * MIB

Clock = Callable[[], float]


class FlashError(Exception):
    """Error during a write or verify job."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class OpenSourceError(FlashError):
    """Image file could not be opened or inspected."""

    def __init__(self, image_path: ImagePath, error: OSError) -> None:
        super().__init__(
            f"Failed to open image {image_path}: {error}",
            error_code="OPEN_SOURCE_FAILED",
        )
        self.image_path = image_path


class OpenDestinationError(FlashError):
    """Device could not be opened."""

    def __init__(self, device_path: DevicePath, error: OSError) -> None:
        super().__init__(
            f"Failed to open device {device_path}: {error}",
            error_code="OPEN_DESTINATION_FAILED",
        )
        self.device_path = device_path


class ReadError(FlashError):
    """Reading the image or the device failed (including short reads)."""

    def __init__(self, what: str, detail: object) -> None:
        super().__init__(f"Read error on {what}: {detail}", error_code="READ_FAILED")


class WriteIOError(FlashError):
    """Writing to the device failed."""

    def __init__(self, device_path: DevicePath, detail: object) -> None:
        super().__init__(
            f"Write error on {device_path}: {detail}", error_code="WRITE_FAILED"
        )


class FlushError(FlashError):
    """Flushing buffered data to the device failed."""

    def __init__(self, device_path: DevicePath, error: OSError) -> None:
        super().__init__(
            f"Flush error on {device_path}: {error}", error_code="FLUSH_FAILED"
        )


class SyncError(FlashError):
    """fsync of the device failed."""

    def __init__(self, device_path: DevicePath, error: OSError) -> None:
        super().__init__(
            f"Sync error on {device_path}: {error}", error_code="SYNC_FAILED"
        )


class VerifyMismatchError(FlashError):
    """Device contents differ from the image."""

    def __init__(self) -> None:
        super().__init__(
            "Mismatch between image and device", error_code="VERIFY_MISMATCH"
        )


def compute_throughput(done: int, started: float, clock: Clock) -> float:
    """Bytes per second since `started`, with elapsed time floored."""
    elapsed = max(clock() - started, MIN_ELAPSED)
    return done / elapsed


def read_exact(f: BinaryIO, size: int, what: str) -> bytes:
    """Read exactly `size` bytes.

    Raises:
        ReadError: On an I/O error or if the stream ends early.
    """
    parts: list[bytes] = []
    remaining = size
    while remaining > 0:
        try:
            chunk = f.read(remaining)
        except OSError as e:
            raise ReadError(what, e) from e
        if not chunk:
            raise ReadError(
                what, f"unexpected end of data ({size - remaining} of {size} bytes)"
            )
        parts.append(chunk)
        remaining -= len(chunk)
    return b"".join(parts)


def _write_all(dst: BinaryIO, chunk: bytes, device_path: DevicePath) -> None:
    """Write a whole chunk, looping on short writes."""
    view = memoryview(chunk)
    offset = 0
    while offset < len(view):
        try:
            n = dst.write(view[offset:])
        except OSError as e:
            raise WriteIOError(device_path, e) from e
        if not n:
            raise WriteIOError(
                device_path, f"short write ({offset} of {len(view)} bytes accepted)"
            )
        offset += n


def _open_device_for_write(device_path: DevicePath) -> BinaryIO:
    """Open a device write-only without truncating or creating it."""
    try:
        fd = os.open(device_path, os.O_WRONLY)
    except OSError as e:
        raise OpenDestinationError(device_path, e) from e
    return os.fdopen(fd, "wb", buffering=0)


def _copy(
    image_path: ImagePath,
    device_path: DevicePath,
    block_size: int,
    clock: Clock,
) -> Iterator[JobEvent]:
    try:
        src = open(image_path, "rb")
    except OSError as e:
        raise OpenSourceError(image_path, e) from e

    with src:
        try:
            total = os.fstat(src.fileno()).st_size
        except OSError as e:
            raise OpenSourceError(image_path, e) from e

        logger.info(
            "Writing image %s (%d bytes) to %s", image_path.name, total, device_path
        )
        yield JobStarted(total=total)

        with _open_device_for_write(device_path) as dst:
            written = 0
            started = clock()
            while True:
                try:
                    chunk = src.read(block_size)
                except OSError as e:
                    raise ReadError(f"image {image_path}", e) from e
                if not chunk:
                    break

                _write_all(dst, chunk, device_path)
                written += len(chunk)

                if written % _LOG_EVERY < len(chunk):
                    logger.debug("Write progress: %d / %d bytes", written, total)

                yield JobProgress(
                    done=written,
                    total=max(total, written),
                    throughput=compute_throughput(written, started, clock),
                )

            # Flush all buffers and sync to device
            try:
                dst.flush()
            except OSError as e:
                raise FlushError(device_path, e) from e
            try:
                os.fsync(dst.fileno())
            except OSError as e:
                raise SyncError(device_path, e) from e

        logger.info("Wrote %d bytes to %s", written, device_path)


def write_image(
    image_path: ImagePath,
    device_path: DevicePath,
    *,
    block_size: int = DEFAULT_BLOCK_SIZE,
    clock: Clock = time.monotonic,
) -> Iterator[JobEvent]:
    """Write an image file to a block device.

    Steps:
    1. Unmount the device's mounted partitions (best effort, warnings only)
    2. Copy the image in block_size chunks, reporting progress per chunk
    3. Flush and fsync the device
    4. Re-read the partition table (best effort, warnings only)

    Args:
        image_path: Image file to write.
        device_path: Target whole-disk device.
        block_size: Chunk size for I/O.
        clock: Monotonic clock used for throughput.

    Yields:
        Job events, ending with exactly one JobFinished.
    """
    report = unmount_partitions(device_path)
    if report.unmounted:
        logger.info("Unmounted %s before writing", ", ".join(report.unmounted))
    for mount_point, message in report.failed.items():
        yield JobWarning(f"Could not unmount {mount_point}: {message}")

    try:
        yield from _copy(image_path, device_path, block_size, clock)
    except FlashError as e:
        logger.error("Write to %s failed: %s", device_path, e.message)
        yield JobFinished(error=e.message)
        return

    # The data is already synced; a failed re-read does not fail the write.
    try:
        reread_partition_table(device_path)
    except PlatformCommandError as e:
        logger.warning("Partition re-read failed for %s: %s", device_path, e.message)
        yield JobWarning(e.message)

    yield JobFinished()


def _compare(
    image_path: ImagePath,
    device_path: DevicePath,
    size: int,
    block_size: int,
    clock: Clock,
) -> Iterator[JobEvent]:
    try:
        image = open(image_path, "rb")
    except OSError as e:
        raise OpenSourceError(image_path, e) from e

    with image:
        try:
            device = open(device_path, "rb")
        except OSError as e:
            raise OpenDestinationError(device_path, e) from e

        with device:
            logger.info("Verifying %d bytes of %s", size, device_path)
            yield JobStarted(total=size)

            checked = 0
            started = clock()
            while checked < size:
                to_read = min(block_size, size - checked)
                expected = read_exact(image, to_read, f"image {image_path}")
                actual = read_exact(device, to_read, f"device {device_path}")
                if expected != actual:
                    raise VerifyMismatchError()

                checked += to_read
                yield JobProgress(
                    done=checked,
                    total=size,
                    throughput=compute_throughput(checked, started, clock),
                )


def verify_image(
    image_path: ImagePath,
    device_path: DevicePath,
    size: int,
    *,
    block_size: int = DEFAULT_BLOCK_SIZE,
    clock: Clock = time.monotonic,
) -> Iterator[JobEvent]:
    """Compare the first `size` bytes of a device with an image.

    The mismatch error does not report the offending offset.

    Args:
        image_path: Image file that was written.
        device_path: Device to check.
        size: Number of bytes to compare (normally the image size).
        block_size: Chunk size for I/O.
        clock: Monotonic clock used for throughput.

    Yields:
        Job events, ending with exactly one JobFinished.
    """
    try:
        yield from _compare(image_path, device_path, size, block_size, clock)
    except FlashError as e:
        logger.error("Verification of %s failed: %s", device_path, e.message)
        yield JobFinished(error=e.message)
        return

    logger.info("Verification passed for %s", device_path)
    yield JobFinished()


__all__ = [
    "DEFAULT_BLOCK_SIZE",
    "FlashError",
    "FlushError",
    "OpenDestinationError",
    "OpenSourceError",
    "ReadError",
    "SyncError",
    "VerifyMismatchError",
    "WriteIOError",
    "compute_throughput",
    "read_exact",
    "verify_image",
    "write_image",
]
