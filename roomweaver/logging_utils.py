"""Logging utilities for roomweaver.

Provides color-coded output to distinguish deterministic generation, provider
calls and cache traffic.
"""

import os
from enum import Enum


class Color(Enum):
    """ANSI color codes for terminal output."""

    # Colors for operation types
    BLUE = "\033[94m"      # Deterministic operations (layout, placement, slicing)
    YELLOW = "\033[93m"    # Provider calls (image generation, LLM)
    MAGENTA = "\033[95m"   # Cache hits, misses and evictions
    RED = "\033[91m"       # Errors and fallbacks
    GREEN = "\033[92m"     # Success/completion
    CYAN = "\033[96m"      # Info/metadata

    # Formatting
    BOLD = "\033[1m"
    RESET = "\033[0m"


# Markers for operation types (color-blind accessible)
LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_PROVIDER = "[AI]"
LOG_TAG_CACHE = "[$]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes if colors are enabled.

    Args:
        text: Text to colorize
        color: Color to apply
        bold: Whether to make text bold

    Returns:
        Colorized text if ROOMWEAVER_NO_COLOR is not set, otherwise plain text
    """
    if os.getenv("ROOMWEAVER_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def log_deterministic(message: str) -> None:
    """Log a deterministic operation (blue)."""
    print(colored(f"{LOG_TAG_DETERMINISTIC} {message}", Color.BLUE))


def log_provider(message: str) -> None:
    """Log an external provider call (yellow)."""
    print(colored(f"{LOG_TAG_PROVIDER} {message}", Color.YELLOW))


def log_cache(message: str) -> None:
    """Log cache traffic (magenta)."""
    print(colored(f"{LOG_TAG_CACHE} {message}", Color.MAGENTA))


def log_error(message: str) -> None:
    """Log an error or fallback (red)."""
    print(colored(f"{LOG_TAG_ERROR} {message}", Color.RED))


def log_success(message: str) -> None:
    """Log a success (green)."""
    print(colored(f"{LOG_TAG_SUCCESS} {message}", Color.GREEN))


def log_info(message: str) -> None:
    """Log metadata/info (cyan)."""
    print(colored(f"{LOG_TAG_INFO} {message}", Color.CYAN))
