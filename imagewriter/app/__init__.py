"""Interactive workflow: model, messages, commands, reducer and dispatcher.

Messages flow into update(model, msg), which returns a new model and a
list of commands; the Dispatcher runs each command in the background and
posts the resulting messages back to the event loop.
"""

from imagewriter.app.commands import (
    Cmd,
    RefreshDevices,
    ReexecPrivileged,
    ScanImages,
    VerifyImage,
    WriteImage,
)
from imagewriter.app.dispatcher import Dispatcher
from imagewriter.app.model import CONFIRM_TOKEN, Model
from imagewriter.app.runtime import run
from imagewriter.app.update import update

__all__ = [
    # Model
    "CONFIRM_TOKEN",
    "Model",
    # Commands
    "Cmd",
    "RefreshDevices",
    "ReexecPrivileged",
    "ScanImages",
    "VerifyImage",
    "WriteImage",
    # Loop
    "Dispatcher",
    "run",
    "update",
]
