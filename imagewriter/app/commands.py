"""Commands emitted by the reducer and executed by the Dispatcher.

A command describes a side effect to perform. The reducer never performs
I/O itself; it returns commands alongside the new model.
"""

from dataclasses import dataclass

from imagewriter.types import DevicePath, ImagePath


@dataclass(frozen=True)
class ScanImages:
    query: str


@dataclass(frozen=True)
class RefreshDevices:
    pass


@dataclass(frozen=True)
class WriteImage:
    image: ImagePath
    device: DevicePath


@dataclass(frozen=True)
class VerifyImage:
    image: ImagePath
    device: DevicePath
    size: int


@dataclass(frozen=True)
class ReexecPrivileged:
    """Replace the process with a privileged copy, keeping its arguments."""


Cmd = ScanImages | RefreshDevices | WriteImage | VerifyImage | ReexecPrivileged
