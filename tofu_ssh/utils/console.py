"""Colorful console logging formatter."""

import logging
import re
import sys
from datetime import datetime

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "white": "\033[37m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "bright_black": "\033[90m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
    "bright_yellow": "\033[93m",
    "bright_blue": "\033[94m",
    "bright_magenta": "\033[95m",
    "bright_cyan": "\033[96m",
    "bg_red": "\033[41m",
}

# Log level colors
LEVEL_COLORS = {
    "DEBUG": COLORS["bright_black"],
    "INFO": COLORS["bright_green"],
    "WARNING": COLORS["bright_yellow"],
    "ERROR": COLORS["bright_red"],
    "CRITICAL": COLORS["bg_red"] + COLORS["white"] + COLORS["bold"],
}

# Component colors for logger names
COMPONENT_COLORS = {
    "tofu_ssh.services.verifier": COLORS["bright_magenta"],
    "tofu_ssh.services.known_hosts": COLORS["bright_cyan"],
    "tofu_ssh.services.lock": COLORS["cyan"],
    "tofu_ssh.services.client": COLORS["bright_blue"],
    "tofu_ssh.config": COLORS["green"],
    "asyncssh": COLORS["yellow"],
    "default": COLORS["white"],
}

FINGERPRINT_PATTERN = re.compile(r"(SHA256:[A-Za-z0-9+/]+)")
SSH_TARGET_PATTERN = re.compile(r"(\w+@[\w.\-]+:\d+)")


class ColorfulFormatter(logging.Formatter):
    """Colorful log formatter with component highlighting."""

    def __init__(self, use_colors: bool = True) -> None:
        """Initialize the formatter.

        Args:
            use_colors: Whether to use ANSI colors.
        """
        super().__init__()
        self.use_colors = use_colors

    def _colorize(self, text: str, color: str) -> str:
        """Apply color to text if colors are enabled."""
        if not self.use_colors:
            return text
        return f"{color}{text}{COLORS['reset']}"

    def _get_component_color(self, name: str) -> str:
        """Get color for a logger name/component."""
        for prefix, color in COMPONENT_COLORS.items():
            if prefix != "default" and name.startswith(prefix):
                return color
        return COMPONENT_COLORS["default"]

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        """Format local timestamp with milliseconds."""
        dt = datetime.fromtimestamp(record.created)
        return f"{dt.strftime('%H:%M:%S')}.{int(record.msecs):03d} {dt.strftime('%m/%d')}"

    def _format_level(self, record: logging.LogRecord) -> str:
        """Format log level with color and fixed width."""
        level = record.levelname
        color = LEVEL_COLORS.get(level, COLORS["white"])
        return self._colorize(f"{level:<8}", color)

    def _format_component(self, record: logging.LogRecord) -> str:
        """Format component/logger name with color."""
        name = record.name
        if name.startswith("tofu_ssh."):
            name = name[len("tofu_ssh."):]
        color = self._get_component_color(record.name)
        return self._colorize(f"{name:<20}", color)

    def _highlight_message(self, message: str) -> str:
        """Highlight fingerprints and user@host:port targets."""
        if not self.use_colors:
            return message
        if "SHA256:" in message:
            message = FINGERPRINT_PATTERN.sub(
                f"{COLORS['bright_yellow']}\\1{COLORS['reset']}", message
            )
        if "@" in message and ":" in message:
            message = SSH_TARGET_PATTERN.sub(
                f"{COLORS['bright_magenta']}\\1{COLORS['reset']}", message
            )
        return message

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with colors."""
        timestamp = self._colorize(self._format_timestamp(record), COLORS["dim"])
        level = self._format_level(record)
        component = self._format_component(record)
        sep = self._colorize("|", COLORS["dim"])
        message = self._highlight_message(record.getMessage())

        line = f"{timestamp} {sep} {level} {sep} {component} {sep} {message}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: str = "INFO") -> None:
    """Install the colorful formatter on the root logger.

    Logs go to stderr so command output on stdout stays clean.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColorfulFormatter(use_colors=sys.stderr.isatty()))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    # Reduce noise from third-party libraries
    logging.getLogger("asyncssh").setLevel(logging.WARNING)
