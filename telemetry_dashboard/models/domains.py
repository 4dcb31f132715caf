"""Pydantic models for resolved domain identities and per-domain rollups."""

from __future__ import annotations

from typing import Literal

import pydantic

from telemetry_dashboard.utils.serialization import CAMEL_CONFIG, snake_to_camel

DomainCategory = Literal["main", "api", "cdn", "static", "auth", "analytics", "other"]

ContextId = int | str

UNKNOWN_DOMAIN = "unknown"
LOCALHOST_DOMAIN = "localhost"
SENTINEL_DOMAINS = frozenset([UNKNOWN_DOMAIN, LOCALHOST_DOMAIN])


class DomainIdentity(pydantic.BaseModel):
    """Canonical identity of the host a URL points at."""

    model_config = pydantic.ConfigDict(
        alias_generator=snake_to_camel, populate_by_name=True, frozen=True
    )

    full_domain: str
    base_domain: str
    subdomain: str | None = None
    category: DomainCategory = "other"
    service_group: str | None = None
    # None when no context URL was supplied to the parser.
    is_context_domain: bool | None = None

    @property
    def is_sentinel(self) -> bool:
        return self.base_domain in SENTINEL_DOMAINS

    @property
    def grouping_key(self) -> str:
        """Service group name when known, else the base domain."""
        return self.service_group or self.base_domain


class HostStats(pydantic.BaseModel):
    """Rollup for one exact hostname inside a domain group."""

    model_config = CAMEL_CONFIG

    hostname: str
    subdomain: str | None = None
    category: DomainCategory = "other"
    total_requests: int = 0
    error_count: int = 0
    token_count: int = 0
    avg_response_time: float = 0.0
    max_response_time: float = 0.0
    # Requests that contributed a positive latency to the average.
    response_time_samples: int = 0
    success_rate: float = 100.0
    last_seen: int = 0


class ContextInfo(pydantic.BaseModel):
    """Browsing contexts that touched a domain group."""

    model_config = CAMEL_CONFIG

    context_ids: list[ContextId] = pydantic.Field(default_factory=list)
    primary_context_url: str | None = None
    is_main_domain: bool = False
    related_domains: list[str] = pydantic.Field(default_factory=list)


class DomainAggregate(pydantic.BaseModel):
    """Rollup statistics for one grouping key (service group or base domain)."""

    model_config = CAMEL_CONFIG

    domain: str
    base_domain: str
    service_group: str | None = None
    category: DomainCategory = "other"
    total_requests: int = 0
    error_count: int = 0
    token_count: int = 0
    avg_response_time: float = 0.0
    max_response_time: float = 0.0
    # Requests that contributed a positive latency to the average.
    response_time_samples: int = 0
    success_rate: float = 100.0
    last_seen: int = 0
    observed_hostnames: list[str] = pydantic.Field(default_factory=list)
    subdomain_stats: dict[str, HostStats] = pydantic.Field(default_factory=dict)
    is_grouped: bool = False
    context_info: ContextInfo = pydantic.Field(default_factory=ContextInfo)

    @property
    def total_events(self) -> int:
        return self.total_requests + self.error_count + self.token_count
