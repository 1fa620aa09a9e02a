"""
Logging Configuration

Configures logging for the sync engine.
Output goes to stderr to keep stdout clean for operator-facing reports.

Auth API URLs carry the app secret and tokens in the query string, so every
record passes through SecretRedactingFilter before it is written.
"""

import logging
import re
import sys

# Query parameters that must never reach a log line
REDACTED_PARAMS = ("app_secret", "access_token", "refresh_token", "auth_code", "sign")

HTTP_LOGGERS = ("urllib3", "requests")

_SECRET_PARAM_RE = re.compile(r"\b(%s)=[^&\s\"']+" % "|".join(REDACTED_PARAMS))


class SecretRedactingFilter(logging.Filter):
    """Masks secret query parameters in the formatted message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRET_PARAM_RE.sub(r"\1=***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set level to DEBUG and show HTTP connection logs
        quiet: If True, set level to WARNING
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))
    handler.addFilter(SecretRedactingFilter())

    logger = logging.getLogger("shopsync")
    logger.setLevel(level)

    # Avoid duplicate handlers if called multiple times
    logger.handlers.clear()
    logger.addHandler(handler)

    # urllib3 logs full request URLs at DEBUG; only show them when asked
    for name in HTTP_LOGGERS:
        http_logger = logging.getLogger(name)
        http_logger.handlers.clear()
        if verbose:
            http_logger.setLevel(logging.DEBUG)
            http_logger.addHandler(handler)
            http_logger.propagate = False
        else:
            http_logger.setLevel(logging.WARNING)
            http_logger.propagate = True
