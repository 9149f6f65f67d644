"""Engine event schema and the module-level emit helpers.

Events carry a UTC ISO-8601 timestamp ending in ``Z``.  Nothing is
written until ``set_log_dir`` configures a sink.
"""

from __future__ import annotations

import sys
import time
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from gridcalc.logging.sink import EventSink


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Cell edits
    formula_parse_error = "formula_parse_error"
    circular_reference = "circular_reference"

    # Function registry
    function_error = "function_error"

    # Recalculation
    recalc_completed = "recalc_completed"
    formulas_initialized = "formulas_initialized"

    # Row/column insert and delete
    structural_edit = "structural_edit"

    # Configuration
    config_loaded = "config_loaded"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

FORMULA_SYNTAX = "formula_syntax"
FORMULA_RANGE_TOO_LARGE = "formula_range_too_large"
FUNCTION_RAISED = "function_raised"
CIRCULAR_DEPENDENCY = "circular_dependency"


# ---------------------------------------------------------------------------
# Context truncation
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long strings and lists cut short.

    Formula text can be arbitrarily long and cell lists can cover a whole
    sheet; neither should bloat a single log line.
    """
    out: dict[str, Any] = {}
    for k, v in context.items():
        out[k] = _truncate_value(v)
    return out


def _truncate_value(v: Any) -> Any:
    if isinstance(v, dict):
        return truncate_context(v)
    if isinstance(v, (list, tuple)):
        items = [_truncate_value(item) for item in list(v)[:50]]
        if len(v) > 50:
            items.append(f"...[{len(v) - 50} more]")
        return items
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class EngineEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------

_sink: EventSink | None = None


def set_log_dir(
    log_dir: str | Path | None,
    *,
    fsync: bool = False,
    tail_bytes: int | None = None,
) -> None:
    """Send events to ``<log_dir>/events.ndjson``; None turns logging off."""
    global _sink
    from gridcalc.logging.sink import EventSink

    _sink = None if log_dir is None else EventSink(Path(log_dir), fsync=fsync, tail_bytes=tail_bytes)


def get_sink() -> EventSink | None:
    return _sink


# ---------------------------------------------------------------------------
# Emit
# ---------------------------------------------------------------------------

_WARN_INTERVAL_SECS = 60.0
_last_warned = float("-inf")


def _warn_once_a_minute(msg: str) -> None:
    global _last_warned
    now = time.monotonic()
    if now - _last_warned >= _WARN_INTERVAL_SECS:
        _last_warned = now
        print(f"[gridcalc] {msg}", file=sys.stderr)


def emit(event: EngineEvent) -> None:
    """Write *event* to the configured sink, if any.

    A logging failure must never break a recalculation, so errors here
    become a stderr warning, printed at most once a minute.
    """
    sink = _sink
    if sink is None:
        return
    try:
        sink.write(event.model_copy(update={"context": truncate_context(event.context)}))
    except Exception as exc:
        _warn_once_a_minute(f"event log write failed: {type(exc).__name__}: {exc}")


def _emit_at(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None,
) -> None:
    emit(
        EngineEvent(
            level=level,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )


def emit_info(event_type: EventType, message: str, context: dict[str, Any] | None = None) -> None:
    _emit_at(EventLevel.info, event_type, message, context, None)


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    _emit_at(EventLevel.warning, event_type, message, context, error_code)


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    _emit_at(EventLevel.error, event_type, message, context, error_code)
