"""Unit tests for pipeline log formatting."""

from __future__ import annotations

import logging

from app.core.logging import PipelineFormatter, run_context, setup_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="app.services.cascade.orchestrator",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Step completed",
        args=(),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def test_extras_are_appended_as_json() -> None:
    line = PipelineFormatter().format(_record(step=2, step_name="Destination Resolution"))

    assert "| INFO     | app.services.cascade.orchestrator | Step completed" in line
    assert line.endswith('{"step": 2, "step_name": "Destination Resolution"}')


def test_run_context_keys_come_first() -> None:
    record = _record(duration_ms=12, step=3, itinerary_id=42, job_id=7)

    assert list(run_context(record)) == ["itinerary_id", "job_id", "step", "duration_ms"]


def test_record_without_extras_has_no_json_suffix() -> None:
    line = PipelineFormatter().format(_record())

    assert line.endswith("Step completed")


def test_setup_quiets_http_client_loggers(monkeypatch) -> None:
    app_logger = logging.getLogger("app")
    monkeypatch.setattr(app_logger, "handlers", [])
    monkeypatch.setattr(app_logger, "propagate", True)

    setup_logging(logging.DEBUG)

    assert app_logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert isinstance(app_logger.handlers[0].formatter, PipelineFormatter)
