"""Pydantic models for raw telemetry records and their classified events.

The capture pipeline produces three kinds of record (network
requests, console errors, token/auth events) with no declared
kind, in either camelCase or the storage layer's snake_case.
:class:`TelemetryRecord` accepts that shape leniently, and
:func:`to_event` classifies it exactly once into the closed
union :data:`TelemetryEvent`.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime
from typing import Annotated, Literal

import pydantic

from telemetry_dashboard.models.domains import ContextId

RecordKind = Literal["request", "error", "token"]


# ── Lenient coercion helpers ───────────────────────────────────


def _coerce_str(value: object) -> str | None:
    """Keep non-empty strings and stringify scalars; drop everything else."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    text = value.strip() if isinstance(value, str) else str(value)
    return text or None


def _finite(value: float) -> float | None:
    return value if math.isfinite(value) else None


def _coerce_int(value: object) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        number = _coerce_float(text)
        if number is not None:
            return int(number)
        try:
            return int(datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp() * 1000)
        except (ValueError, OverflowError):
            return None
    return None


def _coerce_float(value: object) -> float | None:
    """Finite floats only; NaN and infinities are absent."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        if isinstance(value, (int, float)):
            return _finite(float(value))
        if isinstance(value, str):
            return _finite(float(value.strip()))
    except (ValueError, OverflowError):
        return None
    return None


def _coerce_context_id(value: object) -> ContextId | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


LenientStr = Annotated[str | None, pydantic.BeforeValidator(_coerce_str)]
LenientInt = Annotated[int | None, pydantic.BeforeValidator(_coerce_int)]
LenientFloat = Annotated[float | None, pydantic.BeforeValidator(_coerce_float)]
LenientContextId = Annotated[ContextId | None, pydantic.BeforeValidator(_coerce_context_id)]


# ── Raw record ─────────────────────────────────────────────────


class NestedUrl(pydantic.BaseModel):
    """A nested object carrying a URL (``request`` or ``details``)."""

    model_config = pydantic.ConfigDict(extra="ignore")

    url: LenientStr = None


def _alias(*names: str) -> pydantic.AliasChoices:
    return pydantic.AliasChoices(*names)


class TelemetryRecord(pydantic.BaseModel):
    """One captured record, as produced by the capture pipeline.

    Unknown fields are kept.  Field values of the wrong type are
    treated as absent rather than rejected, so a single malformed
    record never fails validation of a batch.
    """

    model_config = pydantic.ConfigDict(extra="allow", populate_by_name=True)

    url: LenientStr = None
    request: NestedUrl | None = None
    details: NestedUrl | None = None
    source_url: LenientStr = pydantic.Field(default=None, validation_alias=_alias("source_url", "sourceUrl"))
    timestamp: LenientInt = pydantic.Field(default=None, validation_alias=_alias("timestamp", "time"))
    context_id: LenientContextId = pydantic.Field(
        default=None, validation_alias=_alias("context_id", "contextId", "tab_id", "tabId")
    )
    context_url: LenientStr = pydantic.Field(
        default=None, validation_alias=_alias("context_url", "contextUrl", "tab_url", "tabUrl")
    )
    main_domain: LenientStr = pydantic.Field(default=None, validation_alias=_alias("main_domain", "mainDomain"))

    # Request fields
    status: LenientInt = None
    response_time: LenientFloat = pydantic.Field(
        default=None, validation_alias=_alias("response_time", "responseTime", "duration", "time")
    )

    # Error fields
    severity: LenientStr = None
    level: LenientStr = None
    message: LenientStr = None
    source: LenientStr = None

    # Token fields
    type: LenientStr = None
    token_type: LenientStr = pydantic.Field(default=None, validation_alias=_alias("token_type", "tokenType"))
    value_hash: LenientStr = pydantic.Field(default=None, validation_alias=_alias("value_hash", "valueHash", "token"))

    @pydantic.field_validator("request", "details", mode="before")
    @classmethod
    def _nested(cls, value: object) -> object:
        return value if isinstance(value, (Mapping, NestedUrl)) else None

    def resolve_url(self) -> str | None:
        """First available URL: ``url``, ``request.url``, ``details.url``, ``source_url``."""
        for candidate in (
            self.url,
            self.request.url if self.request else None,
            self.details.url if self.details else None,
            self.source_url,
        ):
            if candidate:
                return candidate
        return None

    @property
    def kind(self) -> RecordKind:
        """Classify by field presence: error fields win over token fields."""
        if self.severity or self.level or self.type == "error" or self.source == "console":
            return "error"
        if self.token_type or self.value_hash or self.type == "token":
            return "token"
        return "request"


# ── Classified events ──────────────────────────────────────────


class _EventBase(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    url: str
    timestamp: int | None = None
    context_id: ContextId | None = None
    context_url: str | None = None
    main_domain: str | None = None


class RequestEvent(_EventBase):
    """A network request."""

    kind: Literal["request"] = "request"
    status: int | None = None
    response_time: float | None = None


class ErrorEvent(_EventBase):
    """A console error or warning."""

    kind: Literal["error"] = "error"
    severity: str | None = None
    message: str | None = None


class TokenEvent(_EventBase):
    """An authentication or token observation."""

    kind: Literal["token"] = "token"
    token_type: str | None = None


TelemetryEvent = Annotated[RequestEvent | ErrorEvent | TokenEvent, pydantic.Field(discriminator="kind")]


def to_event(record: TelemetryRecord) -> RequestEvent | ErrorEvent | TokenEvent | None:
    """Classify a record into its event variant.

    Returns ``None`` when the record has no resolvable URL.
    """
    url = record.resolve_url()
    if url is None:
        return None

    common = {
        "url": url,
        "timestamp": record.timestamp,
        "context_id": record.context_id,
        "context_url": record.context_url,
        "main_domain": record.main_domain,
    }
    kind = record.kind
    if kind == "error":
        return ErrorEvent(**common, severity=record.severity or record.level, message=record.message)
    if kind == "token":
        return TokenEvent(**common, token_type=record.token_type or record.type)
    return RequestEvent(**common, status=record.status, response_time=record.response_time)
