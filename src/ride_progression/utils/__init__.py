"""Utility helpers shared across the package."""

from .atomic_write import atomic_write
from .log_sanitizer import configure_logging, install_log_sanitizer, sanitize_string

__all__ = [
    "atomic_write",
    "configure_logging",
    "install_log_sanitizer",
    "sanitize_string",
]
