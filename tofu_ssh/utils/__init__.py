"""Utilities for tofu_ssh."""

from tofu_ssh.utils.console import ColorfulFormatter, configure_logging
from tofu_ssh.utils.shell import command_string, quote_arg

__all__ = [
    "ColorfulFormatter",
    "command_string",
    "configure_logging",
    "quote_arg",
]
