"""Pydantic schema of the persisted relationship-tracker entry.

Sets and maps are stored as lists and lists of ``[key, value]``
pairs so that the entry stays plain JSON.
"""

from __future__ import annotations

import pydantic

from telemetry_dashboard.models.domains import ContextId
from telemetry_dashboard.utils.serialization import CAMEL_CONFIG


class ContextEntryState(pydantic.BaseModel):
    """Domains contacted from one browsing context."""

    model_config = CAMEL_CONFIG

    primary_domain: str
    domains: list[str] = pydantic.Field(default_factory=list)


class DomainRelationshipState(pydantic.BaseModel):
    """Co-occurrence data for one domain."""

    model_config = CAMEL_CONFIG

    related_domains: list[str] = pydantic.Field(default_factory=list)
    context_occurrences: list[tuple[ContextId, int]] = pydantic.Field(default_factory=list)
    last_seen: int = 0


class TrackerSnapshot(pydantic.BaseModel):
    """The whole tracker state as written to the key-value store."""

    model_config = CAMEL_CONFIG

    context_domains: list[tuple[ContextId, ContextEntryState]]
    domain_relationships: list[tuple[str, DomainRelationshipState]]
