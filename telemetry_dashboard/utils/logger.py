"""
Structured console logging with timestamps and timers.

Every line goes to stderr as ``[HH:MM:SS.mmm] <symbol> [Context] message
key=value ...``.  ``LOG_LEVEL`` sets the minimum level shown
(``debug``, ``timing``, ``info``, ``warn`` or ``error``; default
``info``), and ``NO_COLOR`` turns off ANSI colours.

Timer state lives in a ``contextvars.ContextVar`` so that concurrent
request handlers do not clobber each other's measurements.
"""

from __future__ import annotations

import contextvars
import dataclasses
import os
import sys
import time
from collections.abc import Mapping
from datetime import UTC, datetime

_timers_var: contextvars.ContextVar[dict[str, float]] = contextvars.ContextVar("_timers_var")


def _get_timers() -> dict[str, float]:
    """Return the per-context timer dict, creating it on first access."""
    try:
        return _timers_var.get()
    except LookupError:
        timers: dict[str, float] = {}
        _timers_var.set(timers)
        return timers


# ── Levels ──────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class _Level:
    rank: int
    colour: str
    symbol: str


_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_GRAY = "\033[90m"
_GREEN = "\033[32m"
_RED = "\033[31m"
_YELLOW = "\033[33m"
_CYAN = "\033[36m"
_MAGENTA = "\033[35m"
_BLUE = "\033[34m"

_LEVELS = {
    "debug": _Level(10, _GRAY, "•"),
    "timing": _Level(15, _MAGENTA, "⏱"),
    "info": _Level(20, _CYAN, "ℹ"),
    "success": _Level(20, _GREEN, "✓"),
    "warn": _Level(30, _YELLOW, "⚠"),
    "error": _Level(40, _RED, "✗"),
}

# Kept for callers that compare ranks directly.
_level_rank = {name: level.rank for name, level in _LEVELS.items()}


def _threshold() -> int:
    """Read the minimum rank from ``LOG_LEVEL`` on every call so tests can patch it."""
    name = os.environ.get("LOG_LEVEL", "info").strip().lower()
    return _level_rank.get(name, _level_rank["info"])


def _paint(text: str, *codes: str) -> str:
    if "NO_COLOR" in os.environ:
        return text
    return "".join(codes) + text + _RESET


# ── Formatting ──────────────────────────────────────────────────


def _get_timestamp() -> str:
    """Return the current UTC time as HH:MM:SS.mmm."""
    now = datetime.now(UTC)
    return f"{now:%H:%M:%S}.{now.microsecond // 1000:03d}"


def _format_duration(ms: float) -> str:
    """Milliseconds below one second, seconds above."""
    if ms < 1:
        return f"{ms:.2f}ms"
    if ms < 1000:
        return f"{int(ms)}ms"
    return f"{ms / 1000:.2f}s"


def _format_value(value: object) -> str:
    """Render one data value; containers are summarised by size."""
    if value is None:
        return _paint("None", _DIM)
    if isinstance(value, bool):
        return _paint(str(value), _GREEN if value else _RED)
    if isinstance(value, (int, float)):
        return _paint(str(value), _YELLOW)
    if isinstance(value, str):
        shown = value if len(value) <= 200 else value[:197] + "..."
        return _paint(f'"{shown}"', _GREEN)
    if isinstance(value, Mapping):
        return _paint(f"{{{len(value)} keys}}", _CYAN)
    if isinstance(value, (list, tuple, set, frozenset)):
        return _paint(f"[{len(value)} items]", _CYAN)
    return str(value)


def _format_data(data: Mapping[str, object]) -> str:
    return " ".join(f"{_paint(key + '=', _DIM)}{_format_value(value)}" for key, value in data.items())


# ── Logger ──────────────────────────────────────────────────────


class Logger:
    """Structured logger with a context prefix and named timers."""

    def __init__(self, context: str = "Telemetry") -> None:
        self._context = context

    @property
    def context(self) -> str:
        return self._context

    def _log(self, level_name: str, message: str, data: Mapping[str, object] | None = None) -> None:
        level = _LEVELS.get(level_name, _LEVELS["info"])
        if level.rank < _threshold():
            return
        parts = [
            _paint(f"[{_get_timestamp()}]", _GRAY),
            _paint(level.symbol, level.colour),
            _paint(f"[{self._context}]", _BOLD),
            message,
        ]
        if data:
            parts.append(_format_data(data))
        print(" ".join(parts), file=sys.stderr)

    def info(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._log("info", message, data)

    def success(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._log("success", message, data)

    def warn(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._log("warn", message, data)

    def error(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._log("error", message, data)

    def debug(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._log("debug", message, data)

    def start_timer(self, label: str) -> None:
        """Start (or restart) the timer *label* for this logger's context."""
        _get_timers()[f"{self._context}:{label}"] = time.monotonic() * 1000

    def end_timer(self, label: str, message: str | None = None, data: Mapping[str, object] | None = None) -> float:
        """Stop a timer and log the elapsed time at ``timing`` level.

        Returns the elapsed milliseconds, or ``0.0`` when the timer
        was never started.
        """
        started = _get_timers().pop(f"{self._context}:{label}", None)
        if started is None:
            self.warn(f'Timer "{label}" was not started')
            return 0.0

        elapsed = time.monotonic() * 1000 - started
        took = _paint(_format_duration(elapsed), _MAGENTA)
        self._log("timing", f"{message or f'Completed: {label}'} {_paint('took', _DIM)} {took}", data)
        return elapsed

    def section(self, title: str) -> None:
        """Print a divider block announcing *title*."""
        rule = _paint("─" * 60, _BLUE)
        print(f"\n{rule}\n{_paint('  ' + title, _BLUE, _BOLD)}\n{rule}\n", file=sys.stderr)


def create_logger(context: str) -> Logger:
    """Create a logger for a specific module."""
    return Logger(context)
