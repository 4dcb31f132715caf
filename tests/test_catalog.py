"""Tests for the static service catalog."""

from __future__ import annotations

import pytest

from telemetry_dashboard.analysis.catalog import (
    CATEGORY_PATTERNS,
    DEFAULT_CATALOG,
    SERVICE_GROUPS,
    ServiceCatalog,
)


class TestServiceGroups:
    """Tests for ServiceCatalog.group_for."""

    @pytest.mark.parametrize(
        ("host", "group"),
        [
            ("reddit.com", "reddit"),
            ("oauth.reddit.com", "reddit"),
            ("shreddit.events", "reddit"),
            ("raw.githubusercontent.com", "github"),
            ("claude.ai", "anthropic"),
            ("login.microsoftonline.com", "microsoft"),
            ("i.scdn.co", "spotify"),
        ],
    )
    def test_listed_hosts(self, host: str, group: str) -> None:
        assert DEFAULT_CATALOG.group_for(host) == group

    def test_www_listing_is_normalised(self) -> None:
        assert DEFAULT_CATALOG.group_for("www.reddit.com") == "reddit"

    def test_falls_back_to_base_domain(self) -> None:
        assert DEFAULT_CATALOG.group_for("api.reddit.com", "reddit.com") == "reddit"

    def test_unlisted_host_without_base(self) -> None:
        assert DEFAULT_CATALOG.group_for("api.reddit.com") is None

    def test_unknown_domain(self) -> None:
        assert DEFAULT_CATALOG.group_for("example.com", "example.com") is None

    def test_first_group_wins(self) -> None:
        catalog = ServiceCatalog(service_groups={"one": ("shared.test",), "two": ("shared.test", "two.test")})
        assert catalog.group_for("shared.test") == "one"
        assert catalog.group_for("two.test") == "two"

    def test_every_group_is_non_empty(self) -> None:
        assert all(hosts for hosts in SERVICE_GROUPS.values())

    def test_groups_are_read_only(self) -> None:
        with pytest.raises(TypeError):
            SERVICE_GROUPS["new"] = ("new.test",)  # type: ignore[index]


class TestCategorize:
    """Tests for ServiceCatalog.categorize."""

    @pytest.mark.parametrize(
        ("label", "category"),
        [
            ("api", "api"),
            ("api2", "api"),
            ("graphql", "api"),
            ("svc", "api"),
            ("cdn", "cdn"),
            ("cdn-eu", "cdn"),
            ("edge", "cdn"),
            ("static", "static"),
            ("assets", "static"),
            ("img", "static"),
            ("auth", "auth"),
            ("oauth", "auth"),
            ("accounts", "auth"),
            ("analytics", "analytics"),
            ("pixel", "analytics"),
            ("API", "api"),
        ],
    )
    def test_known_labels(self, label: str, category: str) -> None:
        assert DEFAULT_CATALOG.categorize(label) == category

    @pytest.mark.parametrize("label", ["apiary", "cdnjs", "shop", "mail", "blog"])
    def test_unmatched_labels(self, label: str) -> None:
        assert DEFAULT_CATALOG.categorize(label) is None

    def test_pattern_order(self) -> None:
        assert [p.category for p in CATEGORY_PATTERNS] == ["api", "cdn", "static", "auth", "analytics"]

    def test_custom_patterns(self, fixture_catalog: ServiceCatalog) -> None:
        assert fixture_catalog.categorize("api") == "api"
        assert fixture_catalog.group_for("acme-cdn.test") == "acme"
        assert fixture_catalog.group_for("reddit.com", "reddit.com") is None
