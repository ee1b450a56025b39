# vectorpipe/observability/logger.py

"""
Structured JSON logging.

Components log through module loggers with `extra={...}`; the fields land
at the top level of each JSON line. `setup_logging` is called once by the
entry point, never by library code.
"""

import contextlib
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from typing import Iterator, Optional

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

# Third-party loggers held at WARNING
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "openai")


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Extra fields are inlined; a field clashing with a base key is kept
    under `extra_<name>`. Values json cannot encode are stringified.
    """

    def format(self, record: logging.LogRecord) -> str:

        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():

            if key in _RECORD_ATTRS or key.startswith("_"):
                continue

            payload[f"extra_{key}" if key in payload else key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Send root logging to stdout, and to `log_file` when given, as JSON."""

    formatter = JSONFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:

        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(level.upper())

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextlib.contextmanager
def log_stage(
    logger: logging.Logger,
    document_id: str,
    stage: str,
    level: int = logging.INFO,
    **fields,
) -> Iterator[dict]:
    """
    Log `<stage>_started` and `<stage>_completed` around a block.

    The yielded dict is merged into the completion record, so the block
    can report counts it only knows at the end. An exception is logged
    as `<stage>_failed` and re-raised.
    """

    base = {"document_id": document_id, "stage": stage, **fields}
    summary: dict = {}

    logger.log(level, f"{stage}_started", extra=base)

    start_time = time.perf_counter()

    try:
        yield summary

    except Exception as e:

        logger.error(
            f"{stage}_failed",
            extra={
                **base,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )

        raise

    logger.log(
        level,
        f"{stage}_completed",
        extra={
            **base,
            **summary,
            "latency_seconds": round(time.perf_counter() - start_time, 3),
        },
    )
