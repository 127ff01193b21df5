"""Interactive terminal access for host key confirmation.

The terminal is switched to raw mode only for the duration of a prompt
session and always restored afterwards, whether the session ends with
acceptance, rejection or an error.
"""

import logging
import os
import sys
import termios
import tty
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol, TextIO

from tofu_ssh.exceptions import PromptIOError

logger = logging.getLogger(__name__)

CTRL_C = b"\x03"
CTRL_D = b"\x04"
CTRL_U = b"\x15"
BACKSPACE = (b"\x08", b"\x7f")
LINE_ENDINGS = (b"\r", b"\n")


class LineTerminal(Protocol):
    """Line-based terminal used by the host key verifier."""

    def write(self, text: str) -> None: ...

    def read_line(self) -> str: ...


class Terminal:
    """Line reader and writer over raw-mode terminal descriptors."""

    def __init__(self, fd_in: int, fd_out: int) -> None:
        self.fd_in = fd_in
        self.fd_out = fd_out

    def write(self, text: str) -> None:
        """Write text, translating newlines for raw output.

        Raises:
            PromptIOError: If the terminal cannot be written
        """
        data = text.replace("\r\n", "\n").replace("\n", "\r\n").encode("utf-8")
        try:
            while data:
                written = os.write(self.fd_out, data)
                data = data[written:]
        except OSError as e:
            raise PromptIOError(f"failed to write to terminal: {e}") from e

    def read_line(self) -> str:
        """Read one line of input, echoing what is typed.

        Raises:
            PromptIOError: On interrupt, end of input or read failure
        """
        chars: list[str] = []
        while True:
            try:
                byte = os.read(self.fd_in, 1)
            except OSError as e:
                raise PromptIOError(f"failed to read from terminal: {e}") from e

            if not byte:
                raise PromptIOError("unexpected end of terminal input")
            if byte in LINE_ENDINGS:
                self.write("\n")
                return "".join(chars)
            if byte == CTRL_C:
                self.write("^C\n")
                raise PromptIOError("interrupted")
            if byte == CTRL_D:
                if not chars:
                    self.write("\n")
                    raise PromptIOError("unexpected end of terminal input")
                continue
            if byte in BACKSPACE:
                if chars:
                    chars.pop()
                    self.write("\b \b")
                continue
            if byte == CTRL_U:
                self.write("\b \b" * len(chars))
                chars.clear()
                continue

            char = byte.decode("latin-1")
            if char.isprintable():
                chars.append(char)
                self.write(char)


def is_interactive(stream: TextIO) -> bool:
    """Check whether stream is attached to a terminal."""
    try:
        return stream.isatty()
    except (AttributeError, OSError, ValueError):
        return False


@contextmanager
def open_terminal(
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> Iterator[Terminal | None]:
    """Open the controlling terminal in raw mode.

    Yields:
        Terminal bound to stdin/stdout, or None when stdin is not a TTY

    Raises:
        PromptIOError: If the terminal mode cannot be changed
    """
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout

    if not is_interactive(stdin):
        logger.debug("stdin is not a terminal")
        yield None
        return

    fd_in = stdin.fileno()
    fd_out = stdout.fileno() if is_interactive(stdout) else fd_in
    try:
        saved = termios.tcgetattr(fd_in)
        tty.setraw(fd_in, termios.TCSADRAIN)
    except termios.error as e:
        raise PromptIOError(f"failed to configure terminal: {e}") from e

    try:
        yield Terminal(fd_in, fd_out)
    except BaseException:
        try:
            _restore_mode(fd_in, saved)
        except PromptIOError as e:
            logger.error("%s", e)
        raise
    else:
        _restore_mode(fd_in, saved)


def _restore_mode(fd: int, saved: list) -> None:
    """Put the terminal back into its saved mode.

    Raises:
        PromptIOError: If the mode cannot be restored
    """
    try:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
    except termios.error as e:
        raise PromptIOError(f"failed to restore terminal: {e}") from e
    logger.debug("Restored terminal mode")
