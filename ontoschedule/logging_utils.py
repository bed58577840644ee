"""Logging utilities for schedule building and execution.

Provides color-coded output to distinguish builder activity from action invocations.
"""

from enum import Enum

from .config import Config


class Color(Enum):
    """ANSI color codes for terminal output."""

    # Colors for operation types
    BLUE = "\033[94m"      # Builder (graph construction, timing pass)
    YELLOW = "\033[93m"    # Action invocations
    RED = "\033[91m"       # Errors
    GREEN = "\033[92m"     # Success/completion
    CYAN = "\033[96m"      # Info/metadata

    # Formatting
    BOLD = "\033[1m"
    RESET = "\033[0m"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes if colors are enabled.

    Args:
        text: Text to colorize
        color: Color to apply
        bold: Whether to make text bold

    Returns:
        Colorized text unless Config.NO_COLOR is set, otherwise plain text
    """
    if Config.NO_COLOR:
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


# Markers for operation types (color-blind accessible)
TAG_BUILD = "[build]"   # Graph construction
TAG_STEP = "[step]"     # Action invocation
TAG_ERROR = "[!]"       # Error
TAG_SUCCESS = "[ok]"    # Success
TAG_INFO = "[i]"        # Information


def log_build(message: str) -> None:
    """Log a builder operation (blue)."""
    print(colored(f"{TAG_BUILD} {message}", Color.BLUE))


def log_step(message: str) -> None:
    """Log an action invocation (yellow)."""
    print(colored(f"{TAG_STEP} {message}", Color.YELLOW))


def log_error(message: str) -> None:
    """Log an error (red)."""
    print(colored(f"{TAG_ERROR} {message}", Color.RED))


def log_success(message: str) -> None:
    """Log a success (green)."""
    print(colored(f"{TAG_SUCCESS} {message}", Color.GREEN))


def log_info(message: str) -> None:
    """Log metadata/info (cyan)."""
    print(colored(f"{TAG_INFO} {message}", Color.CYAN))


def trace_build(message: str) -> None:
    """Log a builder operation only when ONTOSCHEDULE_TRACE_BUILD is on."""
    if Config.TRACE_BUILD:
        log_build(message)


def trace_action(message: str) -> None:
    """Log an action invocation only when ONTOSCHEDULE_TRACE_ACTIONS is on."""
    if Config.TRACE_ACTIONS:
        log_step(message)
