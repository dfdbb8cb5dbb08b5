"""Logging utilities for Tileverse worlds.

Provides color-coded console output so routing decisions, text generation,
remote agent traffic and recovered failures are easy to tell apart.
"""

import os
from enum import Enum


class Color(Enum):
    """ANSI color codes for terminal output."""

    BLUE = "\033[94m"      # Deterministic operations (routing, movement)
    YELLOW = "\033[93m"    # Text generation calls
    MAGENTA = "\033[95m"   # Remote agent traffic
    RED = "\033[91m"       # Errors, fallbacks and retries
    GREEN = "\033[92m"     # Success/completion
    CYAN = "\033[96m"      # Info/metadata

    BOLD = "\033[1m"
    RESET = "\033[0m"


# Markers for operation types (color-blind accessible)
LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_LLM = "[AI]"
LOG_TAG_REMOTE = "[A2A]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes unless TILEVERSE_NO_COLOR is set."""
    if os.getenv("TILEVERSE_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def is_verbose() -> bool:
    """Return True when per-agent gate decisions should be printed."""
    return os.getenv("TILEVERSE_VERBOSE", "").lower() in {"1", "true", "yes"}


def log_deterministic(message: str) -> None:
    print(colored(f"{LOG_TAG_DETERMINISTIC} {message}", Color.BLUE))


def log_llm(message: str) -> None:
    print(colored(f"{LOG_TAG_LLM} {message}", Color.YELLOW))


def log_remote(message: str) -> None:
    print(colored(f"{LOG_TAG_REMOTE} {message}", Color.MAGENTA))


def log_error(message: str) -> None:
    print(colored(f"{LOG_TAG_ERROR} {message}", Color.RED))


def log_success(message: str) -> None:
    print(colored(f"{LOG_TAG_SUCCESS} {message}", Color.GREEN))


def log_info(message: str) -> None:
    print(colored(f"{LOG_TAG_INFO} {message}", Color.CYAN))
