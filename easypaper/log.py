"""Logging setup for the easypaper CLI.

Call ``setup_logging`` once from ``cli.main()`` to configure the ``"easypaper"``
package logger.  All other modules obtain a child logger via
``logging.getLogger(__name__)`` and let records propagate here.

API keys must never reach a log sink: any secret passed to ``setup_logging``
is masked by ``RedactSecrets`` on every handler.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable

_FMT = "%(asctime)s  %(levelname)-7s [%(name)s] %(message)s"
_DATE = "%H:%M:%S"
_MASK = "***"


class RedactSecrets(logging.Filter):
    """Replace every occurrence of the given secrets in the rendered message."""

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__()
        self._secrets = [s for s in secrets if s]

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        for secret in self._secrets:
            message = message.replace(secret, _MASK)
        record.msg = message
        record.args = None
        return True


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
    secrets: Iterable[str] = (),
) -> None:
    """Configure the ``easypaper`` logger for a CLI session.

    Args:
        verbose:  DEBUG level (every state transition) instead of INFO.
        log_file: Also write to this file; parent directories are created.
        secrets:  Strings to mask in every record, typically the API key.

    Safe to call repeatedly: existing handlers are replaced.
    """
    logger = logging.getLogger("easypaper")
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    fmt = logging.Formatter(_FMT, datefmt=_DATE)
    redact = RedactSecrets(secrets)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(fmt)
        handler.addFilter(redact)
        logger.addHandler(handler)
