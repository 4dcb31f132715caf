"""Tests for raw telemetry record validation and classification."""

from __future__ import annotations

import pydantic
import pytest

from telemetry_dashboard.models import telemetry

# ── TelemetryRecord ─────────────────────────────────────────────


class TestTelemetryRecord:
    """Lenient parsing of captured records."""

    def test_camel_case_fields(self) -> None:
        record = telemetry.TelemetryRecord.model_validate(
            {"url": "https://a.com", "tabId": 3, "tabUrl": "https://a.com/", "responseTime": 12.5}
        )
        assert record.context_id == 3
        assert record.context_url == "https://a.com/"
        assert record.response_time == 12.5

    def test_snake_case_fields(self) -> None:
        record = telemetry.TelemetryRecord.model_validate(
            {"url": "https://a.com", "tab_id": "tab-9", "main_domain": "a.com", "response_time": "30"}
        )
        assert record.context_id == "tab-9"
        assert record.main_domain == "a.com"
        assert record.response_time == 30.0

    def test_duration_alias(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "duration": 7})
        assert record.response_time == 7.0

    def test_wrong_types_become_absent(self) -> None:
        record = telemetry.TelemetryRecord.model_validate(
            {"url": ["not", "a", "string"], "status": "n/a", "responseTime": {"x": 1}, "tabId": True}
        )
        assert record.url is None
        assert record.status is None
        assert record.response_time is None
        assert record.context_id is None

    def test_nan_response_time_is_absent(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "responseTime": float("nan")})
        assert record.response_time is None

    @pytest.mark.parametrize("value", ["nan", "inf", "-Infinity", "1e999", float("inf"), float("-inf")])
    def test_non_finite_numbers_are_absent(self, value: object) -> None:
        record = telemetry.TelemetryRecord.model_validate(
            {"url": "https://a.com", "responseTime": value, "timestamp": value, "status": value}
        )
        assert record.response_time is None
        assert record.timestamp is None
        assert record.status is None

    def test_time_alias(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "time": 120})
        assert record.response_time == 120.0
        assert record.timestamp == 120

    def test_timestamp_wins_over_time(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "time": 120, "timestamp": 5})
        assert record.timestamp == 5
        assert record.response_time == 120.0

    def test_iso_timestamp(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "timestamp": "2023-11-14T22:13:20Z"})
        assert record.timestamp == 1_700_000_000_000

    def test_numeric_string_timestamp(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "timestamp": "1700000000000"})
        assert record.timestamp == 1_700_000_000_000

    def test_float_context_id(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "contextId": 4.0})
        assert record.context_id == 4

    def test_unknown_fields_are_kept(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "method": "POST"})
        assert record.model_extra == {"method": "POST"}

    def test_non_mapping_fails_validation(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            telemetry.TelemetryRecord.model_validate("https://a.com")


class TestResolveUrl:
    """URL lookup order."""

    def test_top_level_first(self) -> None:
        record = telemetry.TelemetryRecord.model_validate(
            {"url": "https://top.com", "request": {"url": "https://nested.com"}}
        )
        assert record.resolve_url() == "https://top.com"

    def test_request_url(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"request": {"url": "https://nested.com"}})
        assert record.resolve_url() == "https://nested.com"

    def test_details_url(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"details": {"url": "https://details.com"}})
        assert record.resolve_url() == "https://details.com"

    def test_source_url(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"sourceUrl": "https://source.com/app.js"})
        assert record.resolve_url() == "https://source.com/app.js"

    def test_non_mapping_nested_is_ignored(self) -> None:
        record = telemetry.TelemetryRecord.model_validate({"request": "GET /", "sourceUrl": "https://s.com"})
        assert record.request is None
        assert record.resolve_url() == "https://s.com"

    def test_none(self) -> None:
        assert telemetry.TelemetryRecord.model_validate({"status": 200}).resolve_url() is None


# ── Classification ──────────────────────────────────────────────


class TestToEvent:
    """Classification into request / error / token events."""

    def test_request(self) -> None:
        event = telemetry.to_event(
            telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "status": 404, "responseTime": 10})
        )
        assert isinstance(event, telemetry.RequestEvent)
        assert event.kind == "request"
        assert event.status == 404
        assert event.response_time == 10.0

    @pytest.mark.parametrize(
        "fields",
        [{"severity": "error"}, {"level": "warn"}, {"type": "error"}, {"source": "console"}],
    )
    def test_error(self, fields: dict[str, str]) -> None:
        event = telemetry.to_event(telemetry.TelemetryRecord.model_validate({"url": "https://a.com", **fields}))
        assert isinstance(event, telemetry.ErrorEvent)

    @pytest.mark.parametrize(
        "fields",
        [{"tokenType": "jwt"}, {"valueHash": "abc"}, {"token": "abc"}, {"type": "token"}],
    )
    def test_token(self, fields: dict[str, str]) -> None:
        event = telemetry.to_event(telemetry.TelemetryRecord.model_validate({"url": "https://a.com", **fields}))
        assert isinstance(event, telemetry.TokenEvent)

    def test_error_fields_win(self) -> None:
        event = telemetry.to_event(
            telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "severity": "error", "tokenType": "jwt"})
        )
        assert isinstance(event, telemetry.ErrorEvent)
        assert event.severity == "error"

    def test_level_used_as_severity(self) -> None:
        event = telemetry.to_event(telemetry.TelemetryRecord.model_validate({"url": "https://a.com", "level": "warn"}))
        assert isinstance(event, telemetry.ErrorEvent)
        assert event.severity == "warn"

    def test_no_url(self) -> None:
        assert telemetry.to_event(telemetry.TelemetryRecord.model_validate({"status": 200})) is None

    def test_discriminated_union(self) -> None:
        adapter = pydantic.TypeAdapter(telemetry.TelemetryEvent)
        event = adapter.validate_python({"kind": "token", "url": "https://a.com", "token_type": "jwt"})
        assert isinstance(event, telemetry.TokenEvent)

    def test_events_are_frozen(self) -> None:
        event = telemetry.RequestEvent(url="https://a.com")
        with pytest.raises(pydantic.ValidationError):
            event.status = 500  # type: ignore[misc]
