"""JSON logging for ca_regen runs."""

import logging
import sys
from typing import TextIO

from pythonjsonlogger import jsonlogger

LOGGER_NAME = "ca_regen"
LOG_FORMAT = "%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s"

CORE_FIELDS = frozenset({"timestamp", "level", "message", "exc_info", "funcName", "lineno"})

# Passed through ``extra=``: pipeline stage and the CA a verification trusted.
CONTEXT_FIELDS = frozenset({"stage", "label"})


class RunJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter emitting the core fields plus run context.

    Context fields only appear on records that were logged with them.
    """

    allowed_fields = CORE_FIELDS | CONTEXT_FIELDS

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = log_record.pop("levelname", record.levelname)
        for key in [key for key in log_record if key not in self.allowed_fields]:
            del log_record[key]


def build_handler(stream: TextIO | None = None) -> logging.Handler:
    """Return a stream handler (stderr by default) writing RunJsonFormatter records."""
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(RunJsonFormatter(fmt=LOG_FORMAT, timestamp=True))
    return handler


def _setup_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        logger.addHandler(build_handler())
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def set_log_level(verbose: bool) -> None:
    """Switch LOGGER between INFO and DEBUG."""
    LOGGER.setLevel(logging.DEBUG if verbose else logging.INFO)


LOGGER = _setup_logger()
