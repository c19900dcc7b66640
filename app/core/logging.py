"""Pipeline log formatting.

Every line carries the pipeline context passed through `extra={...}`. The
keys that identify a run (itinerary, job, step) are printed first so that one
itinerary's cascade or decompose run can be followed with a plain grep.
"""

import json
import logging
import sys

from app.config import settings

PIPELINE_LOGGER = "app"

# Context keys, printed in this order ahead of any other extras.
RUN_CONTEXT_KEYS: tuple[str, ...] = ("itinerary_id", "job_id", "step", "step_name")

# HTTP client libraries log every request at INFO; the document store and
# embeddings clients already log what matters.
NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def run_context(record: logging.LogRecord) -> dict[str, object]:
    """Extras attached to a record, run-context keys first."""
    extras = {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }
    ordered = {key: extras.pop(key) for key in RUN_CONTEXT_KEYS if key in extras}
    ordered.update(extras)
    return ordered


class PipelineFormatter(logging.Formatter):
    """One readable line per record with the run context as trailing JSON.

        2026-03-02 09:14:07 | INFO     | app.services.cascade.orchestrator | Step completed {"itinerary_id": 42, "step": 2}
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        line = " | ".join(
            (
                self.formatTime(record, self.datefmt),
                f"{record.levelname:<8}",
                record.name,
                record.message,
            )
        )

        context = run_context(record)
        if context:
            line = f"{line} {json.dumps(context, default=str, ensure_ascii=False)}"

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            line = f"{line}\n{record.exc_text}"
        return line


def setup_logging(level: int | None = None) -> None:
    """Send pipeline logs to stdout. Repeat calls only adjust the level."""
    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO

    logger = logging.getLogger(PIPELINE_LOGGER)
    logger.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(PipelineFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
