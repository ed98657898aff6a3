"""Application model for the interactive workflow.

The model is a frozen dataclass; update() returns modified copies made
with dataclasses.replace(). Counters are in bytes unless stated otherwise.

Invariants:
- If images is non-empty, image_selected < len(images)
- If devices is non-empty, device_selected < len(devices)
- While a job outcome is pending, its progress has done <= total
"""

from dataclasses import dataclass

from imagewriter.types import (
    Device,
    DevicePath,
    ImageCandidate,
    ImagePath,
    JobOutcome,
    Screen,
    TransferProgress,
)

# Literal text the user must type before a destructive write
CONFIRM_TOKEN = "YES"


@dataclass(frozen=True)
class Model:
    """Full application state.

    Attributes:
        screen: Current screen of the workflow.
        query: Image search query.
        images: Results of the last completed image scan.
        image_selected: Highlighted image index.
        image_scanning: A scan has been requested and not yet answered.
        images_scanned: At least one scan has been requested.
        image_error: Message from the last failed scan.
        image_chosen: Image confirmed for writing.
        devices: Results of the last completed device refresh.
        device_selected: Highlighted device index.
        device_refreshing: A refresh has been requested and not yet answered.
        device_error: Message from the last failed refresh.
        device_chosen: Device confirmed for writing.
        confirm_text: Text typed on the confirmation screen.
        write_progress: Progress of the current write.
        write_outcome: Write outcome; None if no write has been started.
        write_warnings: Non-fatal problems reported by the write job.
        verify_enabled: Verify after a successful write.
        verify_progress: Progress of the current verification.
        verify_outcome: Verify outcome; None if no verification has run.
        privileged: Whether the process runs as root.
        notice: Transient message shown to the user (e.g. elevation failure).
        quitting: The event loop should stop.
    """

    screen: Screen = Screen.IMAGE_SEARCH

    query: str = ""
    images: tuple[ImageCandidate, ...] = ()
    image_selected: int = 0
    image_scanning: bool = False
    images_scanned: bool = False
    image_error: str | None = None
    image_chosen: ImagePath | None = None

    devices: tuple[Device, ...] = ()
    device_selected: int = 0
    device_refreshing: bool = False
    device_error: str | None = None
    device_chosen: DevicePath | None = None

    confirm_text: str = ""

    write_progress: TransferProgress = TransferProgress()
    write_outcome: JobOutcome | None = None
    write_warnings: tuple[str, ...] = ()

    verify_enabled: bool = False
    verify_progress: TransferProgress = TransferProgress()
    verify_outcome: JobOutcome | None = None

    privileged: bool = False
    notice: str | None = None
    quitting: bool = False

    def has_both_selections(self) -> bool:
        """True when both an image and a device have been chosen."""
        return self.image_chosen is not None and self.device_chosen is not None

    def is_confirmation_valid(self) -> bool:
        """True when the typed text is exactly the confirmation token."""
        return self.confirm_text == CONFIRM_TOKEN

    def can_start_write(self) -> bool:
        return self.has_both_selections() and self.is_confirmation_valid()

    def is_writing(self) -> bool:
        return self.write_outcome is not None and self.write_outcome.is_pending

    def is_verifying(self) -> bool:
        return self.verify_outcome is not None and self.verify_outcome.is_pending

    def is_job_running(self) -> bool:
        """True while a write or verify job has not reported its outcome."""
        return self.is_writing() or self.is_verifying()

    def selected_image(self) -> ImageCandidate | None:
        if 0 <= self.image_selected < len(self.images):
            return self.images[self.image_selected]
        return None

    def selected_device(self) -> Device | None:
        if 0 <= self.device_selected < len(self.devices):
            return self.devices[self.device_selected]
        return None


__all__ = ["CONFIRM_TOKEN", "Model"]
