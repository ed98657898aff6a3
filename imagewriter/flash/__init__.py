"""Image write and verification pipeline.

This module handles:
- Destructive copy of an image onto a raw block device
- Flush + fsync before declaring success
- Byte-for-byte verification of the written device
- Live progress/throughput events for both jobs

Safety rules:
- The device is opened write-only, never truncated or created
- Unmount and partition re-read are best effort and reported as warnings
- Any open/read/write/flush/sync failure ends the job with a distinct message
"""

from imagewriter.flash.events import (
    JobEvent,
    JobFinished,
    JobProgress,
    JobStarted,
    JobWarning,
)
from imagewriter.flash.writer import (
    DEFAULT_BLOCK_SIZE,
    FlashError,
    FlushError,
    OpenDestinationError,
    OpenSourceError,
    ReadError,
    SyncError,
    VerifyMismatchError,
    WriteIOError,
    verify_image,
    write_image,
)

__all__ = [
    # Events
    "JobEvent",
    "JobFinished",
    "JobProgress",
    "JobStarted",
    "JobWarning",
    # Writer
    "DEFAULT_BLOCK_SIZE",
    "FlashError",
    "FlushError",
    "OpenDestinationError",
    "OpenSourceError",
    "ReadError",
    "SyncError",
    "VerifyMismatchError",
    "WriteIOError",
    "verify_image",
    "write_image",
]
