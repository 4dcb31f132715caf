"""
Table helpers for domain aggregates: sort, search, filter, paginate,
and a dashboard-wide summary.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Literal

import pydantic

from telemetry_dashboard.models.domains import DomainAggregate
from telemetry_dashboard.utils import logger
from telemetry_dashboard.utils.serialization import CAMEL_CONFIG, snake_to_camel

log = logger.create_logger("Presenter")

SortDirection = Literal["asc", "desc"]

DEFAULT_PAGE_SIZE = 25

# Accept both the Python field name and its camelCase alias.
_SORT_FIELDS = {name: name for name in DomainAggregate.model_fields} | {
    snake_to_camel(name): name for name in DomainAggregate.model_fields
}


class Page(pydantic.BaseModel):
    """One page of aggregates."""

    model_config = CAMEL_CONFIG

    items: list[DomainAggregate]
    total: int
    page: int
    page_size: int
    pages: int


class GlobalStats(pydantic.BaseModel):
    """Totals across every aggregate on the dashboard."""

    model_config = CAMEL_CONFIG

    total_requests: int = 0
    total_errors: int = 0
    total_token_events: int = 0
    unique_domains: int = 0
    unique_hostnames: int = 0
    success_rate: float = 100.0
    avg_response_time: float = 0.0
    max_response_time: float = 0.0


def sort_aggregates(
    items: Iterable[DomainAggregate],
    key: str = "total_requests",
    direction: SortDirection = "desc",
) -> list[DomainAggregate]:
    """Sort by a scalar field.

    Strings compare case-insensitively and numbers numerically.
    Unknown or non-scalar fields leave the order unchanged.
    """
    rows = list(items)
    field = _SORT_FIELDS.get(key)
    if field is None:
        log.debug("Ignoring unknown sort key", {"key": key})
        return rows

    values = [getattr(row, field) for row in rows]
    present = [v for v in values if v is not None]
    if all(isinstance(v, str) for v in present):
        def sort_key(row: DomainAggregate) -> tuple[bool, str]:
            value = getattr(row, field)
            return value is None, (value or "").casefold()
    elif all(isinstance(v, (int, float)) for v in present):
        def sort_key(row: DomainAggregate) -> tuple[bool, float]:
            value = getattr(row, field)
            return value is None, float(value or 0)
    else:
        log.debug("Ignoring non-scalar sort key", {"key": key})
        return rows

    if direction == "desc":
        # Keep missing values last in both directions.
        with_value = sorted((r for r in rows if getattr(r, field) is not None), key=sort_key, reverse=True)
        return with_value + [r for r in rows if getattr(r, field) is None]
    return sorted(rows, key=sort_key)


def filter_aggregates(
    items: Iterable[DomainAggregate],
    *,
    search: str | None = None,
    category: str | None = None,
    min_requests: int = 0,
) -> list[DomainAggregate]:
    """Keep aggregates matching a free-text search, a category and a request floor.

    The search is a case-insensitive substring match against the
    grouping key, the base domain, the service group and every
    observed hostname.
    """
    needle = (search or "").strip().casefold()
    result = []
    for row in items:
        if row.total_requests < min_requests:
            continue
        if category and row.category != category:
            continue
        if needle:
            haystack = [row.domain, row.base_domain, row.service_group or "", *row.observed_hostnames]
            if not any(needle in text.casefold() for text in haystack):
                continue
        result.append(row)
    return result


def paginate(items: Iterable[DomainAggregate], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    """Slice a page out of *items*; out-of-range pages are empty."""
    rows = list(items)
    page_size = max(1, page_size)
    page = max(1, page)
    start = (page - 1) * page_size
    return Page(
        items=rows[start : start + page_size],
        total=len(rows),
        page=page,
        page_size=page_size,
        pages=math.ceil(len(rows) / page_size) if rows else 0,
    )


def summarize(items: Iterable[DomainAggregate]) -> GlobalStats:
    """Dashboard totals.

    The success rate is weighted by each group's request count and
    the mean latency by its number of latency samples, so requests
    without a response time never pull the mean.  The maximum is the
    slowest single request.
    """
    rows = list(items)
    total_requests = sum(r.total_requests for r in rows)
    if total_requests:
        success_rate = round(sum(r.success_rate * r.total_requests for r in rows) / total_requests, 2)
    else:
        success_rate = 100.0

    samples = sum(r.response_time_samples for r in rows)
    avg = round(sum(r.avg_response_time * r.response_time_samples for r in rows) / samples, 2) if samples else 0.0

    hostnames = {h for r in rows for h in r.observed_hostnames}
    return GlobalStats(
        total_requests=total_requests,
        total_errors=sum(r.error_count for r in rows),
        total_token_events=sum(r.token_count for r in rows),
        unique_domains=len(rows),
        unique_hostnames=len(hostnames),
        success_rate=success_rate,
        avg_response_time=avg,
        max_response_time=max((r.max_response_time for r in rows), default=0.0),
    )
