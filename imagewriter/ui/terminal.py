"""Terminal input and screen management for the interactive session.

KeyReader turns raw stdin bytes into Key messages on a background thread.
TerminalSession puts the terminal into character mode, drives a full-screen
rich Live display, and can hand the terminal back temporarily (e.g. before
a privileged re-exec).
"""

import codecs
import logging
import os
import select
import sys
import termios
import threading
import tty
from collections.abc import Callable

from rich.console import Console
from rich.live import Live

from imagewriter.app.messages import Key, Msg
from imagewriter.app.model import Model
from imagewriter.ui.render import render_model

logger = logging.getLogger(__name__)

_SEQUENCES = {
    "\x1b[A": Key("up"),
    "\x1b[B": Key("down"),
    "\x1bOA": Key("up"),
    "\x1bOB": Key("down"),
    "\x1b[Z": Key("backtab"),
}

_SINGLE = {
    "\r": Key("enter"),
    "\n": Key("enter"),
    "\t": Key("tab"),
    "\x7f": Key("backspace"),
    "\x08": Key("backspace"),
    "\x1b": Key("esc"),
}


def decode_keys(data: str) -> list[Key]:
    """Decode a chunk of terminal input into key presses.

    Unknown escape sequences are dropped.
    """
    keys: list[Key] = []
    i = 0
    while i < len(data):
        ch = data[i]
        if ch == "\x1b" and i + 1 < len(data) and data[i + 1] in "[O":
            end = i + 2
            while end < len(data) and not data[end].isalpha() and data[end] != "~":
                end += 1
            seq = data[i : end + 1]
            if seq in _SEQUENCES:
                keys.append(_SEQUENCES[seq])
            i = end + 1
            continue
        if ch in _SINGLE:
            keys.append(_SINGLE[ch])
        elif "\x01" <= ch <= "\x1a":
            keys.append(Key(chr(ord(ch) + ord("a") - 1), ctrl=True))
        elif ch.isprintable():
            keys.append(Key(ch))
        i += 1
    return keys


class KeyReader:
    """Background thread reading stdin and posting Key messages."""

    def __init__(
        self,
        post: Callable[[Msg], None],
        fd: int | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self.post = post
        self.fd = fd if fd is not None else sys.stdin.fileno()
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        # Keeps a multibyte character split across reads
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="ignore")

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run, name="imagewriter-keys", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)

    def _run(self) -> None:
        while not self._stop.is_set():
            ready, _, _ = select.select([self.fd], [], [], self.poll_interval)
            if not ready:
                continue
            try:
                data = os.read(self.fd, 64)
            except OSError as e:
                logger.warning("Reading keyboard input failed: %s", e)
                return
            if not data:
                return
            for key in decode_keys(self._decoder.decode(data)):
                self.post(key)


class TerminalSession:
    """Full-screen terminal session.

    Used as a context manager; the terminal mode is restored on exit even
    when the body raises.
    """

    def __init__(self, console: Console | None = None, fd: int | None = None) -> None:
        self.console = console or Console()
        self.fd = fd if fd is not None else sys.stdin.fileno()
        self._saved: list | None = None
        self._live: Live | None = None
        # restore() and resume() may run on a dispatcher thread
        self._lock = threading.Lock()

    def __enter__(self) -> "TerminalSession":
        self.resume()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.restore()

    def resume(self) -> None:
        """Enter character mode and start the live display."""
        with self._lock:
            self._saved = termios.tcgetattr(self.fd)
            tty.setcbreak(self.fd)
            # Deliver ctrl+c and ctrl+s as keys instead of SIGINT and XOFF
            attrs = termios.tcgetattr(self.fd)
            attrs[0] &= ~termios.IXON
            attrs[3] &= ~termios.ISIG
            termios.tcsetattr(self.fd, termios.TCSANOW, attrs)
            self._live = Live(console=self.console, screen=True, auto_refresh=False)
            self._live.start()

    def restore(self) -> None:
        """Stop the live display and restore the saved terminal mode."""
        with self._lock:
            if self._live is not None:
                self._live.stop()
                self._live = None
            if self._saved is not None:
                termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved)
                self._saved = None

    def render(self, model: Model) -> None:
        with self._lock:
            if self._live is not None:
                self._live.update(render_model(model), refresh=True)


__all__ = ["KeyReader", "TerminalSession", "decode_keys"]
