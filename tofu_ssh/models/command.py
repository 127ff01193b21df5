"""Remote command result model."""

from dataclasses import dataclass


@dataclass
class CommandResult:
    """Outcome of a remote command that ran to completion.

    ``returncode`` is the remote exit status, or the negated signal
    number when the command was killed by a signal.
    """

    output: str
    error: str
    returncode: int

    @property
    def signaled(self) -> bool:
        """Whether the command was terminated by a signal."""
        return self.returncode < 0
