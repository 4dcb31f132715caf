"""
Tab-context relationship tracking.

Records which registrable domains are contacted from the same
browsing context (tab) and, from that, which domains co-occur with
each other.  The state survives process restarts by being written to
a :class:`~telemetry_dashboard.storage.kv_store.KeyValueStore`.

Per context the lifecycle is *unseen → tracked → removed*:

- the first :meth:`RelationshipTracker.observe` for a context id
  creates its entry, taking the primary domain from the context URL
  (or from the first observed URL when there is none);
- every later observation adds the domain to the context and unions
  the context's domain set into every member's related set;
- :meth:`RelationshipTracker.context_closed` drops the context entry
  and its per-domain occurrence counters.  Relationship edges the
  context created are kept.

Domain entries are cumulative.  A :class:`RetentionPolicy` can bound
them by age and by related-set size; the default policy keeps
everything.

Persistence is fire-and-forget: mutations schedule a coalesced
background write on the running event loop and never wait for it.
Read and write failures are logged and the tracker carries on in
memory.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Callable, Iterable
from typing import Any

import pydantic

from telemetry_dashboard.analysis import aggregator
from telemetry_dashboard.analysis.domain_parser import DomainParser
from telemetry_dashboard.models.domains import ContextId
from telemetry_dashboard.models.persistence import (
    ContextEntryState,
    DomainRelationshipState,
    TrackerSnapshot,
)
from telemetry_dashboard.storage.kv_store import KeyValueStore
from telemetry_dashboard.utils import logger
from telemetry_dashboard.utils.errors import get_error_message

log = logger.create_logger("RelationshipTracker")

STORAGE_KEY = "tab-domain-tracker"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclasses.dataclass(frozen=True)
class RetentionPolicy:
    """Bounds on cumulative relationship data.

    Attributes:
        max_age_ms: Domain entries not observed for longer than this
            are removed, along with every edge pointing at them.
        max_related_domains: Related sets larger than this keep only
            the most recently observed domains.
    """

    max_age_ms: int | None = None
    max_related_domains: int | None = None

    @property
    def is_unbounded(self) -> bool:
        return self.max_age_ms is None and self.max_related_domains is None


UNBOUNDED = RetentionPolicy()


# ── In-memory graph ─────────────────────────────────────────────


@dataclasses.dataclass
class ContextEntry:
    primary_domain: str
    # dict used as an insertion-ordered set
    domains: dict[str, None] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class DomainEntry:
    related_domains: set[str] = dataclasses.field(default_factory=set)
    context_occurrences: dict[ContextId, int] = dataclasses.field(default_factory=dict)
    last_seen: int = 0


class RelationshipGraph:
    """Context ↔ domain and domain ↔ domain maps, with no I/O."""

    def __init__(self) -> None:
        self.contexts: dict[ContextId, ContextEntry] = {}
        self.domains: dict[str, DomainEntry] = {}

    def _entry(self, domain: str, now: int) -> DomainEntry:
        entry = self.domains.get(domain)
        if entry is None:
            entry = self.domains[domain] = DomainEntry(last_seen=now)
        return entry

    def record(self, context_id: ContextId, domain: str, primary_domain: str | None, now: int) -> None:
        """Record that *domain* was contacted from *context_id*."""
        context = self.contexts.get(context_id)
        if context is None:
            context = self.contexts[context_id] = ContextEntry(primary_domain=primary_domain or domain)
        context.domains[domain] = None

        entry = self._entry(domain, now)
        entry.last_seen = now
        entry.context_occurrences[context_id] = entry.context_occurrences.get(context_id, 0) + 1

        members = list(context.domains)
        for member in members:
            self._entry(member, now).related_domains.update(m for m in members if m != member)

    def related(self, domain: str) -> list[str]:
        entry = self.domains.get(domain)
        return sorted(entry.related_domains) if entry else []

    def remove_context(self, context_id: ContextId) -> bool:
        """Drop a context and its occurrence counters.  Returns False if it was unknown."""
        if self.contexts.pop(context_id, None) is None:
            return False
        for entry in self.domains.values():
            entry.context_occurrences.pop(context_id, None)
        return True

    def prune(self, policy: RetentionPolicy, now: int) -> int:
        """Apply *policy*; returns the number of domain entries removed."""
        removed: set[str] = set()
        if policy.max_age_ms is not None:
            cutoff = now - policy.max_age_ms
            removed = {d for d, e in self.domains.items() if e.last_seen < cutoff}
            for domain in removed:
                del self.domains[domain]
            if removed:
                for entry in self.domains.values():
                    entry.related_domains -= removed
                for context in self.contexts.values():
                    for domain in removed:
                        context.domains.pop(domain, None)

        limit = policy.max_related_domains
        if limit is not None:
            for entry in self.domains.values():
                if len(entry.related_domains) > limit:
                    newest = sorted(
                        entry.related_domains,
                        key=lambda d: (self.domains[d].last_seen if d in self.domains else 0, d),
                        reverse=True,
                    )
                    entry.related_domains = set(newest[:limit])
        return len(removed)

    def merge(self, other: RelationshipGraph) -> None:
        """Fold *other* into this graph (set union, summed counters, latest ``last_seen``)."""
        shared: list[ContextEntry] = []
        for context_id, theirs in other.contexts.items():
            ours = self.contexts.get(context_id)
            if ours is None:
                self.contexts[context_id] = ContextEntry(theirs.primary_domain, dict(theirs.domains))
            else:
                ours.domains.update(theirs.domains)
                shared.append(ours)

        for domain, theirs in other.domains.items():
            ours = self.domains.get(domain)
            if ours is None:
                self.domains[domain] = DomainEntry(
                    set(theirs.related_domains), dict(theirs.context_occurrences), theirs.last_seen
                )
                continue
            ours.related_domains |= theirs.related_domains
            for context_id, count in theirs.context_occurrences.items():
                ours.context_occurrences[context_id] = ours.context_occurrences.get(context_id, 0) + count
            ours.last_seen = max(ours.last_seen, theirs.last_seen)

        # A context seen on both sides links domains neither side saw together.
        for context in shared:
            members = list(context.domains)
            for member in members:
                if member in self.domains:
                    self.domains[member].related_domains.update(m for m in members if m != member)

    # ── Serialization boundary ──────────────────────────────────

    def to_persistable(self) -> TrackerSnapshot:
        return TrackerSnapshot(
            context_domains=[
                (context_id, ContextEntryState(primary_domain=c.primary_domain, domains=list(c.domains)))
                for context_id, c in self.contexts.items()
            ],
            domain_relationships=[
                (
                    domain,
                    DomainRelationshipState(
                        related_domains=sorted(e.related_domains),
                        context_occurrences=list(e.context_occurrences.items()),
                        last_seen=e.last_seen,
                    ),
                )
                for domain, e in self.domains.items()
            ],
        )

    @classmethod
    def from_persistable(cls, snapshot: TrackerSnapshot) -> RelationshipGraph:
        graph = cls()
        for context_id, state in snapshot.context_domains:
            graph.contexts[context_id] = ContextEntry(state.primary_domain, dict.fromkeys(state.domains))
        for domain, state in snapshot.domain_relationships:
            graph.domains[domain] = DomainEntry(
                related_domains=set(state.related_domains),
                context_occurrences=dict(state.context_occurrences),
                last_seen=state.last_seen,
            )
        return graph


# ── Tracker ─────────────────────────────────────────────────────


class RelationshipTracker:
    """Stateful, persisted front end over a :class:`RelationshipGraph`.

    Construct with :meth:`create` to restore persisted state before
    use.  Until :meth:`restore` has completed, :meth:`related_domains`
    only reflects observations made in this process.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        storage_key: str = STORAGE_KEY,
        parser: DomainParser | None = None,
        retention: RetentionPolicy = UNBOUNDED,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._key = storage_key
        self._parser = parser or DomainParser()
        self._retention = retention
        self._clock = clock
        self._graph = RelationshipGraph()
        self._ready = store is None

        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task[None]] = set()
        self._write_queued = False
        self._dirty = False

    @classmethod
    async def create(cls, store: KeyValueStore | None, **kwargs: Any) -> RelationshipTracker:
        """Construct a tracker and await restoration of its persisted state."""
        tracker = cls(store, **kwargs)
        await tracker.restore()
        return tracker

    @classmethod
    def from_persistable(cls, snapshot: TrackerSnapshot, **kwargs: Any) -> RelationshipTracker:
        """Build a ready, in-memory-only tracker from a snapshot."""
        tracker = cls(None, **kwargs)
        tracker._graph = RelationshipGraph.from_persistable(snapshot)
        return tracker

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def graph(self) -> RelationshipGraph:
        return self._graph

    @property
    def retention(self) -> RetentionPolicy:
        return self._retention

    # ── Public API ──────────────────────────────────────────────

    def observe(self, context_id: ContextId, url: str, context_url: str | None = None) -> None:
        """Record a request to *url* made from *context_id*.

        URLs with no resolvable host and context ids that are not an
        int or a string are logged and ignored.
        """
        if isinstance(context_id, bool) or not isinstance(context_id, (int, str)):
            log.warn("Ignoring observation with an invalid context id", {"contextId": repr(context_id)})
            return
        domain = self._parser.base_domain_of(url)
        if domain is None:
            log.warn("Ignoring observation without a resolvable host", {"contextId": context_id, "url": url})
            return

        primary = self._parser.base_domain_of(context_url) if context_url else None
        now = self._clock()
        self._graph.record(context_id, domain, primary, now)
        if not self._retention.is_unbounded:
            removed = self._graph.prune(self._retention, now)
            if removed:
                log.debug("Pruned stale domain entries", {"removed": removed})
        self._schedule_persist()

    def observe_records(self, records: Iterable[aggregator.RawRecord]) -> int:
        """Observe every record that carries a context id; returns how many were observed."""
        count = 0
        for event in aggregator.ingest_records(records):
            if event.context_id is None:
                continue
            self.observe(event.context_id, event.url, event.context_url)
            count += 1
        return count

    def related_domains(self, domain: str) -> list[str]:
        """Domains seen in the same contexts as *domain*, sorted.

        *domain* may be a registrable domain, a hostname or a URL.
        """
        key = domain.strip().lower()
        if key not in self._graph.domains:
            key = self._parser.base_domain_of(key) or key
        return self._graph.related(key)

    def context_closed(self, context_id: ContextId) -> None:
        """Forget a closed context; relationship edges it created are kept."""
        if not self._graph.remove_context(context_id):
            log.debug("Close signal for untracked context", {"contextId": context_id})
            return
        log.debug("Context removed", {"contextId": context_id})
        self._schedule_persist()

    def to_persistable(self) -> TrackerSnapshot:
        return self._graph.to_persistable()

    # ── Persistence ─────────────────────────────────────────────

    async def restore(self) -> None:
        """Load persisted state, merging in anything observed meanwhile.

        A missing entry, a failed read and a schema mismatch all
        leave the tracker starting empty.
        """
        if self._store is None:
            self._ready = True
            return

        restored = RelationshipGraph()
        try:
            raw = await self._store.get(self._key)
        except Exception as exc:
            log.warn("Failed to read relationship state, starting empty", {"error": get_error_message(exc)})
            raw = None

        if raw is None:
            log.debug("No persisted relationship state", {"key": self._key})
        else:
            try:
                restored = RelationshipGraph.from_persistable(TrackerSnapshot.model_validate(raw))
                log.info(
                    "Relationship state restored",
                    {"contexts": len(restored.contexts), "domains": len(restored.domains)},
                )
            except pydantic.ValidationError as exc:
                log.warn(
                    "Persisted relationship state has an unexpected shape, starting empty",
                    {"key": self._key, "errors": exc.error_count()},
                )

        restored.merge(self._graph)
        self._graph = restored
        self._ready = True
        if self._dirty:
            self._schedule_persist()

    async def flush(self) -> None:
        """Wait for scheduled writes and perform any deferred one."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
        if self._dirty and self._ready and self._store is not None:
            await self._write()

    def _schedule_persist(self) -> None:
        if self._store is None:
            return
        self._dirty = True
        # Never overwrite persisted state with a partial graph.
        if not self._ready or self._write_queued:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the write waits for flush().
            return
        self._write_queued = True
        task = loop.create_task(self._write())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self) -> None:
        async with self._lock:
            self._write_queued = False
            if not self._dirty or self._store is None:
                return
            self._dirty = False
            payload = self._graph.to_persistable().model_dump(mode="json", by_alias=True)
            try:
                await self._store.set(self._key, payload)
            except Exception as exc:
                log.warn("Failed to persist relationship state", {"key": self._key, "error": get_error_message(exc)})
