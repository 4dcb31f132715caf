"""
URL and hostname utility functions for domain resolution.
"""

from __future__ import annotations

import ipaddress
import re
from urllib import parse

# Public suffixes made of two labels, where the registrable domain
# needs a third label (``example.co.uk`` rather than ``co.uk``).
MULTI_LABEL_TLDS = frozenset([
    "co.uk", "org.uk", "net.uk", "gov.uk", "ac.uk",
    "co.jp", "co.kr", "co.in", "co.za", "co.nz",
    "com.au", "edu.au", "gov.au", "asn.au", "id.au",
    "com.br", "com.mx", "com.ar",
])

SUPPORTED_SCHEMES = frozenset(["http", "https", "ws", "wss"])

_WWW_RE = re.compile(r"^www\.")


def extract_hostname(url: str) -> str | None:
    """Return the lower-cased hostname of an absolute URL.

    Returns ``None`` for relative URLs, unsupported schemes, and
    anything :func:`urllib.parse.urlsplit` cannot make sense of.
    """
    try:
        parts = parse.urlsplit(url.strip())
        if parts.scheme.lower() not in SUPPORTED_SCHEMES:
            return None
        hostname = parts.hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def strip_www(hostname: str) -> str:
    """Drop a single leading ``www.`` label."""
    return _WWW_RE.sub("", hostname.lower())


def is_ip_address(hostname: str) -> bool:
    """True for IPv4 and IPv6 literals."""
    try:
        ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        return False
    return True


def split_registrable(
    hostname: str,
    multi_label_tlds: frozenset[str] = MULTI_LABEL_TLDS,
) -> tuple[str, str | None]:
    """Split a hostname into its registrable base domain and subdomain.

    Args:
        hostname: A lower-cased hostname with ``www.`` already stripped,
            e.g. ``"api.example.co.uk"``.
        multi_label_tlds: Two-label suffixes that need a third label.

    Returns:
        ``(base_domain, subdomain)``, e.g. ``("example.co.uk", "api")``.
        ``subdomain`` is ``None`` when the host is the base domain itself.
    """
    if is_ip_address(hostname):
        return hostname, None

    labels = [label for label in hostname.split(".") if label]
    if len(labels) < 2:
        return ".".join(labels) or hostname, None

    width = 2
    if len(labels) >= 3 and ".".join(labels[-2:]) in multi_label_tlds:
        width = 3

    base = ".".join(labels[-width:])
    remaining = labels[:-width]
    return base, ".".join(remaining) if remaining else None


def get_base_domain(
    hostname: str,
    multi_label_tlds: frozenset[str] = MULTI_LABEL_TLDS,
) -> str:
    """Extract the registrable base domain from a full hostname.

    Handles common multi-part TLDs (e.g. ``co.uk``,
    ``com.au``) and strips a leading ``www.`` prefix.
    """
    base, _ = split_registrable(strip_www(hostname), multi_label_tlds)
    return base
