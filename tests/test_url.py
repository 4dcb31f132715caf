"""Tests for telemetry_dashboard.utils.url — hostname and registrable-domain helpers."""

from __future__ import annotations

import pytest

from telemetry_dashboard.utils.url import (
    extract_hostname,
    get_base_domain,
    is_ip_address,
    split_registrable,
    strip_www,
)

# ── extract_hostname ────────────────────────────────────────────


class TestExtractHostname:
    """Tests for extract_hostname()."""

    def test_simple_url(self) -> None:
        assert extract_hostname("https://example.com/path") == "example.com"

    def test_url_with_port(self) -> None:
        assert extract_hostname("https://example.com:8080/path") == "example.com"

    def test_lowercases(self) -> None:
        assert extract_hostname("https://API.Example.COM/") == "api.example.com"

    def test_keeps_www(self) -> None:
        assert extract_hostname("https://www.example.co.uk/path") == "www.example.co.uk"

    @pytest.mark.parametrize("url", ["ws://socket.example.com/feed", "wss://socket.example.com/feed"])
    def test_websocket_schemes(self, url: str) -> None:
        assert extract_hostname(url) == "socket.example.com"

    @pytest.mark.parametrize(
        "url",
        ["ftp://example.com/file", "chrome-extension://abcdef/page.html", "data:text/plain,hi", "mailto:a@b.com"],
    )
    def test_unsupported_scheme(self, url: str) -> None:
        assert extract_hostname(url) is None

    def test_relative_url(self) -> None:
        assert extract_hostname("/api/data") is None

    def test_no_scheme(self) -> None:
        assert extract_hostname("example.com") is None

    def test_invalid_port_is_not_fatal(self) -> None:
        # urlsplit only complains when the port is accessed; hostname still resolves.
        assert extract_hostname("https://example.com:99999/") == "example.com"

    def test_bad_ipv6_literal(self) -> None:
        assert extract_hostname("https://[::1/") is None

    def test_ipv4(self) -> None:
        assert extract_hostname("http://192.168.0.1:3000/x") == "192.168.0.1"


# ── strip_www / is_ip_address ───────────────────────────────────


class TestStripWww:
    """Tests for strip_www()."""

    def test_strips_single_prefix(self) -> None:
        assert strip_www("www.example.com") == "example.com"

    def test_only_first_label(self) -> None:
        assert strip_www("www.www.example.com") == "www.example.com"

    def test_leaves_www_in_middle(self) -> None:
        assert strip_www("api.www.example.com") == "api.www.example.com"

    def test_no_prefix(self) -> None:
        assert strip_www("wwwexample.com") == "wwwexample.com"


class TestIsIpAddress:
    """Tests for is_ip_address()."""

    @pytest.mark.parametrize("host", ["127.0.0.1", "10.0.0.255", "::1", "[2001:db8::1]"])
    def test_ip_literals(self, host: str) -> None:
        assert is_ip_address(host)

    @pytest.mark.parametrize("host", ["example.com", "localhost", "1.2.3", ""])
    def test_not_ip(self, host: str) -> None:
        assert not is_ip_address(host)


# ── split_registrable ───────────────────────────────────────────


class TestSplitRegistrable:
    """Tests for split_registrable()."""

    def test_bare_domain(self) -> None:
        assert split_registrable("example.com") == ("example.com", None)

    def test_single_subdomain(self) -> None:
        assert split_registrable("api.example.com") == ("example.com", "api")

    def test_nested_subdomain(self) -> None:
        assert split_registrable("a.b.example.com") == ("example.com", "a.b")

    def test_multi_label_tld(self) -> None:
        assert split_registrable("api.example.co.uk") == ("example.co.uk", "api")

    def test_multi_label_tld_bare(self) -> None:
        assert split_registrable("example.co.uk") == ("example.co.uk", None)

    def test_suffix_alone_is_not_widened(self) -> None:
        assert split_registrable("co.uk") == ("co.uk", None)

    def test_custom_table(self) -> None:
        tlds = frozenset(["co.test"])
        assert split_registrable("shop.acme.co.test", tlds) == ("acme.co.test", "shop")
        assert split_registrable("shop.acme.co.uk", tlds) == ("co.uk", "shop.acme")

    def test_ip_is_whole(self) -> None:
        assert split_registrable("192.168.1.20") == ("192.168.1.20", None)

    def test_single_label(self) -> None:
        assert split_registrable("localhost") == ("localhost", None)


class TestGetBaseDomain:
    """Tests for get_base_domain()."""

    def test_simple_domain(self) -> None:
        assert get_base_domain("example.com") == "example.com"

    def test_strips_www(self) -> None:
        assert get_base_domain("www.example.com") == "example.com"

    def test_subdomain(self) -> None:
        assert get_base_domain("sub.example.com") == "example.com"

    def test_co_uk_tld(self) -> None:
        assert get_base_domain("www.example.co.uk") == "example.co.uk"

    def test_com_au_tld(self) -> None:
        assert get_base_domain("shop.example.com.au") == "example.com.au"
