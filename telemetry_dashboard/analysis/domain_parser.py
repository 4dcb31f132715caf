"""
URL domain parser — resolve a raw URL string to a :class:`DomainIdentity`.

Parsing never raises.  Inputs that cannot be resolved to a host map
to one of two sentinel identities instead:

- ``unknown`` for empty, placeholder, malformed, or unsupported-scheme
  URLs;
- ``localhost`` for path-only URLs (same-origin requests with no
  discoverable host).
"""

from __future__ import annotations

from telemetry_dashboard.analysis.catalog import DEFAULT_CATALOG, ServiceCatalog
from telemetry_dashboard.models.domains import (
    LOCALHOST_DOMAIN,
    UNKNOWN_DOMAIN,
    DomainCategory,
    DomainIdentity,
)
from telemetry_dashboard.utils import url as url_mod

# Placeholder strings the capture pipeline writes when it has no URL.
_PLACEHOLDER_URLS = frozenset(["unknown", "Unknown", "Unknown URL"])


def _sentinel(domain: str, is_context_domain: bool | None = None) -> DomainIdentity:
    return DomainIdentity(
        full_domain=domain,
        base_domain=domain,
        category="other",
        is_context_domain=is_context_domain,
    )


UNKNOWN_IDENTITY = _sentinel(UNKNOWN_DOMAIN)
LOCALHOST_IDENTITY = _sentinel(LOCALHOST_DOMAIN)


class DomainParser:
    """Resolve URLs against an injected :class:`ServiceCatalog`."""

    def __init__(self, catalog: ServiceCatalog = DEFAULT_CATALOG) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> ServiceCatalog:
        return self._catalog

    def hostname_of(self, raw_url: str | None) -> str | None:
        """Return the normalised hostname (``www.`` stripped) or ``None``.

        Scheme-less inputs that look like a bare hostname (a dot and
        no slash) are read as ``https://`` URLs.  Non-string input
        yields ``None``.
        """
        if not isinstance(raw_url, str):
            return None
        text = raw_url.strip()
        if not text or text in _PLACEHOLDER_URLS:
            return None
        if text.startswith("//"):
            text = f"https:{text}"
        elif text.startswith("/"):
            return None
        elif "://" not in text:
            if "." not in text or any(ch in text for ch in "/@ "):
                return None
            text = f"https://{text}"

        hostname = url_mod.extract_hostname(text)
        if not hostname:
            return None
        hostname = url_mod.strip_www(hostname).rstrip(".")
        return hostname or None

    def parse(
        self,
        raw_url: str | None,
        context_url: str | None = None,
    ) -> DomainIdentity:
        """Resolve *raw_url* to a domain identity.

        Args:
            raw_url: The URL as captured; may be relative, scheme-less,
                empty or garbage.
            context_url: The top-level page URL of the browsing context,
                used to flag whether this host is the page's own domain.

        Returns:
            The resolved identity, or a sentinel identity.
        """
        text = raw_url.strip() if isinstance(raw_url, str) else ""
        if text.startswith("/") and not text.startswith("//"):
            return LOCALHOST_IDENTITY

        hostname = self.hostname_of(text)
        if hostname is None:
            return UNKNOWN_IDENTITY

        base_domain, subdomain = url_mod.split_registrable(hostname, self._catalog.multi_label_tlds)
        if not base_domain:
            return UNKNOWN_IDENTITY

        is_context_domain: bool | None = None
        if context_url:
            context_base = self.base_domain_of(context_url)
            is_context_domain = context_base is not None and context_base == base_domain

        return DomainIdentity(
            full_domain=hostname,
            base_domain=base_domain,
            subdomain=subdomain,
            category=self._categorize(subdomain),
            service_group=self._catalog.group_for(hostname, base_domain),
            is_context_domain=is_context_domain,
        )

    def base_domain_of(self, raw_url: str | None) -> str | None:
        """Registrable domain of a URL or bare hostname, or ``None`` if unresolvable."""
        hostname = self.hostname_of(raw_url)
        if hostname is None:
            return None
        base_domain, _ = url_mod.split_registrable(hostname, self._catalog.multi_label_tlds)
        return base_domain or None

    def _categorize(self, subdomain: str | None) -> DomainCategory:
        """Categorise by the first (left-most) subdomain label."""
        if not subdomain:
            return "main"
        first_label = subdomain.split(".", 1)[0]
        return self._catalog.categorize(first_label) or "other"


_default_parser = DomainParser()


def parse_domain(raw_url: str | None, context_url: str | None = None) -> DomainIdentity:
    """Parse with the default catalog."""
    return _default_parser.parse(raw_url, context_url)
