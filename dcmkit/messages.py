"""Console messages: information, warnings and progress on stdout, errors on stderr."""

from __future__ import annotations

import sys

__all__ = ["print_message", "print_warning", "print_error", "print_progress"]


def print_message(text: str) -> None:
    """Write text to standard output as given."""
    sys.stdout.write(text)


def print_warning(text: str) -> None:
    """Write a warning to standard output."""
    print_message("Warning: ")
    print_message(text)


def print_error(text: str) -> None:
    """Write an error to standard error."""
    sys.stderr.write("Error: ")
    sys.stderr.write(text)


def print_progress(fraction: float) -> None:
    """Report how far a task has got, as a fraction."""
    print_message(f"Progress: {fraction:g}\n")