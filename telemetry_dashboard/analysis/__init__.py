"""Domain analysis package.

Parses request URLs into domain identities, rolls telemetry up per
domain group, and tracks which domains share browsing contexts.
"""

from __future__ import annotations

from telemetry_dashboard.analysis.aggregator import DomainAggregator, aggregate
from telemetry_dashboard.analysis.domain_parser import DomainParser, parse_domain
from telemetry_dashboard.analysis.relationships import RelationshipTracker, RetentionPolicy

__all__ = [
    "DomainAggregator",
    "DomainParser",
    "RelationshipTracker",
    "RetentionPolicy",
    "aggregate",
    "parse_domain",
]
