"""
Static lookup tables for domain resolution.

Holds the three compiled-in tables the parser and aggregator
consult: known multi-host services, two-label public suffixes,
and the ordered subdomain-label patterns used for categorisation.
They are bundled in an immutable :class:`ServiceCatalog` that is
passed to the parser and aggregator at construction, so tests can
supply their own fixture tables.
"""

from __future__ import annotations

import dataclasses
import functools
import re
import types
from collections.abc import Mapping

from telemetry_dashboard.models.domains import DomainCategory
from telemetry_dashboard.utils import url


@dataclasses.dataclass(frozen=True)
class CategoryPattern:
    """A subdomain-label pattern and the category it implies."""

    category: DomainCategory
    pattern: re.Pattern[str]


def _label(words: str) -> re.Pattern[str]:
    # Whole label, optionally followed by digits or a hyphenated suffix
    # ("api", "api2", "cdn-eu"), but not "apiary" or "cdnjs".
    return re.compile(rf"^(?:{words})(?:\d+|-.*)?$", re.I)


CATEGORY_PATTERNS: tuple[CategoryPattern, ...] = (
    CategoryPattern("api", _label(r"api|apis|rest|graphql|gateway|svc|services?")),
    CategoryPattern("cdn", _label(r"cdn|edge|cache")),
    CategoryPattern("static", _label(r"static|assets?|media|images?|img|js|css|files?|fonts?")),
    CategoryPattern("auth", _label(r"auth|login|sso|oauth|accounts?|signin|secure")),
    CategoryPattern("analytics", _label(r"analytics|tracking|metrics|stats|telemetry|pixel|collect")),
)

SERVICE_GROUPS: Mapping[str, tuple[str, ...]] = types.MappingProxyType({
    "reddit": ("reddit.com", "www.reddit.com", "oauth.reddit.com", "accounts.reddit.com", "svc.reddit.com", "shreddit.events"),
    "github": ("github.com", "api.github.com", "raw.githubusercontent.com", "avatars.githubusercontent.com", "codeload.github.com", "github.dev"),
    "anthropic": ("claude.ai", "api.anthropic.com", "anthropic.com"),
    "google": ("google.com", "apis.google.com", "accounts.google.com", "drive.google.com", "docs.google.com", "sheets.google.com"),
    "microsoft": ("microsoft.com", "login.microsoftonline.com", "graph.microsoft.com", "outlook.office365.com", "teams.microsoft.com"),
    "meta": ("facebook.com", "graph.facebook.com", "connect.facebook.net", "instagram.com"),
    "twitter": ("twitter.com", "x.com", "api.twitter.com", "abs.twimg.com", "pbs.twimg.com"),
    "linkedin": ("linkedin.com", "api.linkedin.com", "static.licdn.com"),
    "youtube": ("youtube.com", "i.ytimg.com", "ytimg.com"),
    "amazon": ("amazon.com", "images-amazon.com", "ssl-images-amazon.com", "amazonaws.com"),
    "netflix": ("netflix.com", "assets.nflxext.com", "nflximg.net"),
    "stripe": ("stripe.com", "api.stripe.com", "js.stripe.com", "checkout.stripe.com"),
    "paypal": ("paypal.com", "api.paypal.com", "checkout.paypal.com"),
    "spotify": ("spotify.com", "accounts.spotify.com", "api.spotify.com", "i.scdn.co"),
    "discord": ("discord.com", "discordapp.com", "cdn.discordapp.com", "gateway.discord.gg"),
})


@dataclasses.dataclass(frozen=True)
class ServiceCatalog:
    """Immutable bundle of the domain lookup tables."""

    service_groups: Mapping[str, tuple[str, ...]] = dataclasses.field(default_factory=lambda: SERVICE_GROUPS)
    multi_label_tlds: frozenset[str] = url.MULTI_LABEL_TLDS
    category_patterns: tuple[CategoryPattern, ...] = CATEGORY_PATTERNS

    @functools.cached_property
    def _host_index(self) -> dict[str, str]:
        """Map each listed host (``www.`` stripped) to its group name.

        The first group listing a host wins.
        """
        index: dict[str, str] = {}
        for group, hosts in self.service_groups.items():
            for host in hosts:
                index.setdefault(url.strip_www(host), group)
        return index

    def group_for(self, hostname: str, base_domain: str | None = None) -> str | None:
        """Return the service group for a host, or ``None``.

        The exact host is tried first so that hosts like
        ``raw.githubusercontent.com`` can be listed individually,
        then the registrable base domain.
        """
        index = self._host_index
        host = url.strip_www(hostname)
        if host in index:
            return index[host]
        if base_domain is not None:
            return index.get(url.strip_www(base_domain))
        return None

    def categorize(self, label: str) -> DomainCategory | None:
        """Return the category of the first pattern matching *label*."""
        for entry in self.category_patterns:
            if entry.pattern.search(label):
                return entry.category
        return None


DEFAULT_CATALOG = ServiceCatalog()
