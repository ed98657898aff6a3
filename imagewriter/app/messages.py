"""Messages consumed by the reducer.

A message describes something that happened: a timer tick, a key press,
a user intent, or progress/outcome of a background job. Messages are
immutable values and are consumed exactly once by update().
"""

from dataclasses import dataclass

from imagewriter.types import Device, ImageCandidate


# Loop and navigation


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class NextScreen:
    pass


@dataclass(frozen=True)
class PrevScreen:
    pass


@dataclass(frozen=True)
class Key:
    """A key press.

    Attributes:
        key: A single printable character, or one of the names 'enter',
            'esc', 'tab', 'backtab', 'up', 'down', 'backspace'.
        ctrl: Whether Control was held.
    """

    key: str
    ctrl: bool = False


# Image search


@dataclass(frozen=True)
class QueryChanged:
    query: str


@dataclass(frozen=True)
class ImagesScanned:
    results: tuple[ImageCandidate, ...]


@dataclass(frozen=True)
class ImageScanFailed:
    message: str


@dataclass(frozen=True)
class MoveImageSelection:
    delta: int


@dataclass(frozen=True)
class ConfirmImage:
    pass


# Devices


@dataclass(frozen=True)
class RefreshDevicesRequested:
    pass


@dataclass(frozen=True)
class DevicesRefreshed:
    devices: tuple[Device, ...]


@dataclass(frozen=True)
class DevicesRefreshFailed:
    message: str


@dataclass(frozen=True)
class MoveDeviceSelection:
    delta: int


@dataclass(frozen=True)
class ConfirmDevice:
    pass


# Confirmation


@dataclass(frozen=True)
class ConfirmTextChanged:
    text: str


@dataclass(frozen=True)
class ToggleVerify:
    pass


@dataclass(frozen=True)
class StartWrite:
    pass


# Write job


@dataclass(frozen=True)
class WriteStarted:
    total: int


@dataclass(frozen=True)
class WriteProgress:
    done: int
    total: int
    throughput: float


@dataclass(frozen=True)
class WriteWarning:
    message: str


@dataclass(frozen=True)
class WriteFinished:
    error: str | None = None


# Verify job


@dataclass(frozen=True)
class VerifyStarted:
    total: int


@dataclass(frozen=True)
class VerifyProgress:
    done: int
    total: int
    throughput: float


@dataclass(frozen=True)
class VerifyFinished:
    error: str | None = None


# Elevation


@dataclass(frozen=True)
class ElevateRequested:
    pass


@dataclass(frozen=True)
class ElevationFailed:
    message: str


Msg = (
    Tick
    | Quit
    | Back
    | NextScreen
    | PrevScreen
    | Key
    | QueryChanged
    | ImagesScanned
    | ImageScanFailed
    | MoveImageSelection
    | ConfirmImage
    | RefreshDevicesRequested
    | DevicesRefreshed
    | DevicesRefreshFailed
    | MoveDeviceSelection
    | ConfirmDevice
    | ConfirmTextChanged
    | ToggleVerify
    | StartWrite
    | WriteStarted
    | WriteProgress
    | WriteWarning
    | WriteFinished
    | VerifyStarted
    | VerifyProgress
    | VerifyFinished
    | ElevateRequested
    | ElevationFailed
)
