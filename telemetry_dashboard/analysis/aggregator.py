"""
Domain aggregator — roll a snapshot of telemetry records up into
per-domain statistics.

Each record is classified once (request / error / token), resolved
to a grouping key (known service group, else registrable base
domain), and pushed into two buckets: the group's own bucket and
the bucket of the exact hostname it was sent to.  The second bucket
feeds ``subdomain_stats`` so the dashboard can drill down from a
grouped service to its individual hosts without a second pass.

Aggregation is a full recompute: callers re-invoke with the whole
updated record list whenever it changes.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Callable, Iterable, Iterator, Mapping

import pydantic

from telemetry_dashboard.analysis.domain_parser import DomainParser
from telemetry_dashboard.models import telemetry
from telemetry_dashboard.models.domains import (
    UNKNOWN_DOMAIN,
    ContextId,
    ContextInfo,
    DomainAggregate,
    DomainIdentity,
    HostStats,
)
from telemetry_dashboard.utils import logger, url
from telemetry_dashboard.utils.errors import get_error_message

log = logger.create_logger("DomainAggregator")

# A request with no status field counts as successful.  Requests
# the capture layer saw leave but never saw answered (aborted,
# blocked, still pending) have no status, and the dashboard reports
# them optimistically rather than as failures.
OPTIMISTIC_SUCCESS_DEFAULT = True

# Status codes at or above this are failures.
FAILURE_STATUS = 400

RawRecord = Mapping[str, object] | telemetry.TelemetryRecord
Event = telemetry.RequestEvent | telemetry.ErrorEvent | telemetry.TokenEvent


def _now_ms() -> int:
    return int(time.time() * 1000)


def ingest_records(records: Iterable[RawRecord]) -> Iterator[Event]:
    """Validate and classify raw records, skipping ones with no URL.

    Records that fail validation entirely (not a mapping at all)
    are logged and skipped.
    """
    for raw in records:
        try:
            record = raw if isinstance(raw, telemetry.TelemetryRecord) else telemetry.TelemetryRecord.model_validate(raw)
        except pydantic.ValidationError as exc:
            log.debug("Skipping unreadable record", {"error": get_error_message(exc)})
            continue
        event = telemetry.to_event(record)
        if event is not None:
            yield event


# ── Accumulators ────────────────────────────────────────────────


@dataclasses.dataclass
class _Buckets:
    """Events of one group or one host, split by kind."""

    requests: list[telemetry.RequestEvent] = dataclasses.field(default_factory=list)
    errors: list[telemetry.ErrorEvent] = dataclasses.field(default_factory=list)
    tokens: list[telemetry.TokenEvent] = dataclasses.field(default_factory=list)

    def add(self, event: Event) -> None:
        if isinstance(event, telemetry.ErrorEvent):
            self.errors.append(event)
        elif isinstance(event, telemetry.TokenEvent):
            self.tokens.append(event)
        else:
            self.requests.append(event)

    def timestamps(self) -> Iterator[int]:
        for bucket in (self.requests, self.errors, self.tokens):
            for event in bucket:
                if event.timestamp is not None:
                    yield event.timestamp


@dataclasses.dataclass
class _HostEntry:
    identity: DomainIdentity
    buckets: _Buckets = dataclasses.field(default_factory=_Buckets)


@dataclasses.dataclass
class _Group:
    key: str
    identity: DomainIdentity
    base_domain: str
    buckets: _Buckets = dataclasses.field(default_factory=_Buckets)
    hosts: dict[str, _HostEntry] = dataclasses.field(default_factory=dict)
    # dict used as an insertion-ordered set
    context_ids: dict[ContextId, None] = dataclasses.field(default_factory=dict)
    is_main_domain: bool = False


@dataclasses.dataclass(frozen=True)
class _Stats:
    total_requests: int
    error_count: int
    token_count: int
    avg_response_time: float
    max_response_time: float
    response_time_samples: int
    success_rate: float
    last_seen: int


# ── Aggregator ──────────────────────────────────────────────────


class DomainAggregator:
    """Group telemetry records by domain and compute rollup statistics."""

    def __init__(
        self,
        parser: DomainParser | None = None,
        *,
        optimistic_success: bool = OPTIMISTIC_SUCCESS_DEFAULT,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._parser = parser or DomainParser()
        self._optimistic_success = optimistic_success
        self._clock = clock

    @property
    def parser(self) -> DomainParser:
        return self._parser

    def aggregate(self, records: Iterable[RawRecord]) -> list[DomainAggregate]:
        """Aggregate a snapshot of records into per-domain rollups.

        Args:
            records: Raw record mappings (camelCase or snake_case) or
                :class:`TelemetryRecord` instances.

        Returns:
            One aggregate per grouping key, sorted by ``total_requests``
            descending.  Ties keep first-appearance order.  Records that
            resolve to the ``unknown`` sentinel are dropped.
        """
        log.start_timer("aggregate")
        now = self._clock()

        groups: dict[str, _Group] = {}
        context_groups: dict[ContextId, dict[str, None]] = {}
        context_urls: dict[ContextId, str] = {}
        seen = 0
        dropped = 0

        for event in ingest_records(records):
            seen += 1
            identity = self._parser.parse(event.url, event.context_url)
            key = self._grouping_key(event, identity)
            if key == UNKNOWN_DOMAIN:
                dropped += 1
                continue

            group = groups.get(key)
            if group is None:
                base = key if identity.base_domain == UNKNOWN_DOMAIN else identity.base_domain
                group = groups[key] = _Group(key=key, identity=identity, base_domain=base)

            hostname = key if identity.full_domain == UNKNOWN_DOMAIN else identity.full_domain
            host = group.hosts.get(hostname)
            if host is None:
                host = group.hosts[hostname] = _HostEntry(identity=identity)

            group.buckets.add(event)
            host.buckets.add(event)
            if identity.is_context_domain:
                group.is_main_domain = True

            if event.context_id is not None:
                group.context_ids[event.context_id] = None
                context_groups.setdefault(event.context_id, {})[key] = None
                if event.context_url and event.context_id not in context_urls:
                    context_urls[event.context_id] = event.context_url

        results = [self._finalize(group, context_groups, context_urls, now) for group in groups.values()]
        results.sort(key=lambda agg: agg.total_requests, reverse=True)

        log.end_timer(
            "aggregate",
            "Aggregation pass complete",
            {"records": seen, "groups": len(results), "droppedUnknown": dropped},
        )
        return results

    # ── Helpers ─────────────────────────────────────────────────

    def _grouping_key(self, event: Event, identity: DomainIdentity) -> str:
        """Prefer the capture pipeline's ``main_domain`` hint, mapped through the catalog."""
        if event.main_domain:
            hint = url.strip_www(event.main_domain)
            catalog = self._parser.catalog
            return catalog.group_for(hint, url.get_base_domain(hint, catalog.multi_label_tlds)) or hint
        return identity.grouping_key

    def _stats(self, buckets: _Buckets, now: int) -> _Stats:
        requests = buckets.requests
        positive = [e.response_time for e in requests if e.response_time is not None and e.response_time > 0]
        avg = round(sum(positive) / len(positive), 2) if positive else 0.0

        if requests:
            ok = sum(1 for e in requests if self._is_success(e))
            success_rate = round(ok / len(requests) * 100, 2)
        else:
            success_rate = 100.0

        return _Stats(
            total_requests=len(requests),
            error_count=len(buckets.errors),
            token_count=len(buckets.tokens),
            avg_response_time=avg,
            max_response_time=max(positive, default=0.0),
            response_time_samples=len(positive),
            success_rate=success_rate,
            last_seen=max(buckets.timestamps(), default=now),
        )

    def _is_success(self, event: telemetry.RequestEvent) -> bool:
        if event.status is None:
            return self._optimistic_success
        return event.status < FAILURE_STATUS

    def _finalize(
        self,
        group: _Group,
        context_groups: dict[ContextId, dict[str, None]],
        context_urls: dict[ContextId, str],
        now: int,
    ) -> DomainAggregate:
        stats = self._stats(group.buckets, now)

        related: set[str] = set()
        for context_id in group.context_ids:
            related.update(context_groups.get(context_id, {}))
        related.discard(group.key)

        primary_context = next(iter(group.context_ids), None)
        primary_url = context_urls.get(primary_context) if primary_context is not None else None

        subdomain_stats = {}
        for hostname, entry in group.hosts.items():
            host_stats = self._stats(entry.buckets, now)
            subdomain_stats[hostname] = HostStats(
                hostname=hostname,
                subdomain=entry.identity.subdomain,
                category=entry.identity.category,
                **dataclasses.asdict(host_stats),
            )

        return DomainAggregate(
            domain=group.key,
            base_domain=group.base_domain,
            service_group=group.key if group.key in self._parser.catalog.service_groups else group.identity.service_group,
            category=group.identity.category,
            **dataclasses.asdict(stats),
            observed_hostnames=sorted(group.hosts),
            subdomain_stats=subdomain_stats,
            is_grouped=len(group.hosts) > 1,
            context_info=ContextInfo(
                context_ids=list(group.context_ids),
                primary_context_url=primary_url,
                is_main_domain=group.is_main_domain,
                related_domains=sorted(related),
            ),
        )


_default_aggregator = DomainAggregator()


def aggregate(records: Iterable[RawRecord]) -> list[DomainAggregate]:
    """Aggregate with the default parser and catalog."""
    return _default_aggregator.aggregate(records)
