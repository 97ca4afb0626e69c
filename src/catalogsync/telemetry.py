"""OpenTelemetry spans for sync decisions, plus JSON-lines file logging.

Each controller decision (start, local write, external change) runs inside a
``sync.*`` span whose attributes say what was decided: the query involved,
the controller state, the navigation cause, and whether the event was an
echo, a skipped write or a failed write.
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Generator

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

ROOT_LOGGER = "catalogsync"
ATTRIBUTE_PREFIX = "sync."


class SyncSpan:
    """A live ``sync.*`` span. Keyword attributes are stored as ``sync.<key>``."""

    def __init__(self, span: trace.Span) -> None:
        self._span = span

    def mark(self, **attributes: str | bool | int) -> None:
        for key, value in attributes.items():
            self._span.set_attribute(ATTRIBUTE_PREFIX + key, value)

    def write_failed(self, exc: BaseException) -> None:
        self._span.record_exception(exc)
        self.mark(write_failed=True)


class Telemetry:
    """Opens ``sync.*`` spans on one tracer.

    Without a tracer it uses the global OpenTelemetry tracer, which discards
    spans until an SDK provider is installed.
    """

    def __init__(self, tracer: trace.Tracer | None = None) -> None:
        self._tracer = tracer if tracer is not None else trace.get_tracer(ROOT_LOGGER)

    @contextmanager
    def span(self, name: str, **attributes: str | bool | int) -> Generator[SyncSpan, None, None]:
        """Run the block inside span ``sync.<name>`` with initial attributes."""
        with self._tracer.start_as_current_span(ATTRIBUTE_PREFIX + name) as otel_span:
            sync_span = SyncSpan(otel_span)
            sync_span.mark(**attributes)
            yield sync_span

    @classmethod
    def in_memory(cls) -> tuple[Telemetry, InMemorySpanExporter]:
        """Telemetry whose finished spans can be read back from the exporter."""
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        return cls(provider.get_tracer(ROOT_LOGGER)), exporter


class _JsonLinesFormatter(logging.Formatter):
    """``{"ts", "level", "logger", "trace", "span", "msg"}`` per line.

    The trace and span ids come from whichever span is current when the
    record is emitted; all zeros outside a span.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = trace.get_current_span().get_span_context()
        return json.dumps(
            {
                "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
                "level": record.levelname,
                "logger": record.name,
                "trace": format(ctx.trace_id, "032x"),
                "span": format(ctx.span_id, "016x"),
                "msg": record.getMessage(),
            },
            ensure_ascii=False,
        )


def configure_file_logging(log_dir: str = "logs", level: int | str = logging.DEBUG) -> str:
    """Send the ``catalogsync`` logger tree to ``{log_dir}/catalogsync-YYYYMMDD.log``.

    Idempotent: a second call finds the existing file handler and adds none.
    Returns the log file path.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, f"catalogsync-{datetime.now():%Y%m%d}.log")

    logger = logging.getLogger(ROOT_LOGGER)
    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(_JsonLinesFormatter())
        logger.setLevel(level)
        logger.addHandler(handler)
    return log_path
