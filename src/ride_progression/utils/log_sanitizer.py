"""Log sanitization filter to keep sync and import credentials out of logs.

The tracker talks to two authenticated services: intervals.icu (HTTP Basic
with an API key) and Google Drive (OAuth bearer token). This filter redacts
those credentials before a record is emitted, covering:
- Bearer tokens and Google access tokens (ya29.*)
- Basic authorization headers
- API key and token fields in query strings or dict reprs
- Email addresses

Usage:
    from ride_progression.utils.log_sanitizer import configure_logging

    configure_logging("INFO")
"""

import logging
import re
from typing import Any


class LogSanitizationFilter(logging.Filter):
    """Logging filter that redacts credentials from log messages."""

    # More specific patterns come before the generic field patterns
    PATTERNS: list[tuple[re.Pattern, str]] = [
        # Google OAuth access tokens
        (re.compile(r'\bya29\.[a-zA-Z0-9_\-\.]+'), '[REDACTED_GOOGLE_TOKEN]'),

        # Bearer tokens in Authorization headers
        (re.compile(r'Bearer\s+[a-zA-Z0-9_\-\.]+', re.IGNORECASE), 'Bearer [REDACTED_TOKEN]'),

        # Basic credentials (intervals.icu uses API_KEY:<key>)
        (re.compile(r'Basic\s+[a-zA-Z0-9+/=]+', re.IGNORECASE), 'Basic [REDACTED]'),

        # Key and token fields
        (re.compile(r'(api_?key["\']?\s*[:=]\s*["\']?)[^"\'&\s,}]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'(access_token["\']?\s*[:=]\s*["\']?)[^"\'&\s,}]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'(refresh_token["\']?\s*[:=]\s*["\']?)[^"\'&\s,}]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'(client_secret["\']?\s*[:=]\s*["\']?)[^"\'&\s,}]+', re.IGNORECASE), r'\1[REDACTED]'),

        # Email addresses
        (re.compile(r'\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b'), '[REDACTED_EMAIL]'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the record in place. Always lets the record through."""
        if record.msg:
            record.msg = self._sanitize(str(record.msg))

        if record.args:
            record.args = self._sanitize_args(record.args)

        return True

    def _sanitize(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _sanitize_args(self, args: Any) -> Any:
        """Recursively sanitize log arguments."""
        if isinstance(args, str):
            return self._sanitize(args)
        elif isinstance(args, tuple):
            return tuple(self._sanitize_args(arg) for arg in args)
        elif isinstance(args, list):
            return [self._sanitize_args(arg) for arg in args]
        elif isinstance(args, dict):
            return {k: self._sanitize_args(v) for k, v in args.items()}
        else:
            str_val = str(args)
            sanitized = self._sanitize(str_val)
            # Keep numbers and other primitives intact unless something was redacted
            return sanitized if sanitized != str_val else args


def install_log_sanitizer(logger_name: str | None = None) -> None:
    """Install the sanitization filter.

    Args:
        logger_name: If provided, install only on the named logger.
                    If None, install on the root logger and its handlers.
    """
    sanitizer = LogSanitizationFilter()

    if logger_name:
        logging.getLogger(logger_name).addFilter(sanitizer)
        return

    root_logger = logging.getLogger()
    root_logger.addFilter(sanitizer)
    for handler in root_logger.handlers:
        handler.addFilter(sanitizer)


def configure_logging(level: str = "WARNING") -> None:
    """Set up root logging for the command line and install the sanitizer."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    install_log_sanitizer()


def sanitize_string(text: str) -> str:
    """Sanitize a string outside the logging system, e.g. for error messages."""
    return LogSanitizationFilter()._sanitize(text)
