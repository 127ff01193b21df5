"""Shell command safety utilities."""

import shlex


def quote_arg(arg: str) -> str:
    """Safely quote a shell argument.

    Args:
        arg: Argument to quote

    Returns:
        Shell-safe quoted argument
    """
    return shlex.quote(arg)


def command_string(argv: list[str]) -> str:
    """Join an argument vector into one remote shell command.

    Returns:
        Space-separated quoted arguments, empty for an empty vector
    """
    return " ".join(quote_arg(arg) for arg in argv)
