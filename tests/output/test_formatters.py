"""Tests for the format_result dispatcher and OutputSettings."""

import json

from assocsync.output.console import style_for_status
from assocsync.output.formatters import OutputSettings, format_result
from assocsync.services.result import ServiceError, ServiceResult


def _report(op: str = "watch") -> ServiceResult:
    return ServiceResult(
        ok=True,
        op=op,
        data={
            "connection_status": "degraded",
            "count": 2,
            "domains": {
                "stats": {
                    "status": "fresh",
                    "items": None,
                    "age_seconds": 1.25,
                    "error": None,
                    "poll": {"attempts": 3, "successes": 3, "skipped": 1, "last_latency": 0.2},
                },
                "events": {
                    "status": "error",
                    "items": 4,
                    "age_seconds": None,
                    "error": {"kind": "network", "message": "HTTP 503"},
                    "poll": {"attempts": 2, "successes": 1, "skipped": 0, "last_latency": 0.1},
                },
            },
        },
    )


class TestOutputSettings:
    def test_defaults(self) -> None:
        s = OutputSettings()
        assert (s.json_output, s.quiet, s.verbose) == (False, False, False)


class TestFormatResultJSON:
    def test_json_mode_returns_valid_json(self) -> None:
        output = format_result(_report(), settings=OutputSettings(json_output=True))
        data = json.loads(output)
        assert data["ok"] is True
        assert data["op"] == "watch"
        assert data["data"]["domains"]["events"]["error"]["message"] == "HTTP 503"

    def test_json_mode_for_errors(self) -> None:
        result = ServiceResult(
            ok=False, op="watch", error=ServiceError(code="NO_DOMAINS", message="none")
        )
        data = json.loads(format_result(result, settings=OutputSettings(json_output=True)))
        assert data["error"]["code"] == "NO_DOMAINS"


class TestFormatResultHuman:
    def test_error(self) -> None:
        result = ServiceResult(
            ok=False,
            op="watch",
            error=ServiceError(code="UNKNOWN_DOMAIN", message="Unknown domain: nope"),
        )
        assert format_result(result) == "ERROR: watch - Unknown domain: nope"

    def test_quiet(self) -> None:
        assert format_result(_report(), settings=OutputSettings(quiet=True)) == "OK: watch"

    def test_report_table(self) -> None:
        output = format_result(_report())
        assert output.startswith("OK: watch")
        assert "connection: degraded" in output
        assert "stats" in output
        assert "HTTP 503" in output
        assert "1.2s" in output
        assert "Latency" not in output

    def test_report_marks_stale_data_behind_a_fetch(self) -> None:
        result = ServiceResult(
            ok=True,
            op="status",
            data={
                "connection_status": "online",
                "count": 1,
                "domains": {"events": {"status": "loading", "stale": True, "items": 1}},
            },
        )
        assert "loading (stale)" in format_result(result)

    def test_verbose_report_adds_columns(self) -> None:
        output = format_result(_report("status"), settings=OutputSettings(verbose=True))
        assert "Latency" in output
        assert "Skipped" in output

    def test_domain_list(self) -> None:
        result = ServiceResult(
            ok=True,
            op="list_domains",
            data={
                "count": 1,
                "items": [
                    {
                        "domain": "members",
                        "enabled": True,
                        "interval": 60.0,
                        "key_field": "id",
                        "mode": "patch",
                        "stale_after": None,
                        "url": "http://h/m",
                    }
                ],
            },
        )
        output = format_result(result)
        assert "members" in output
        assert "60.0s" in output
        assert "patch" in output

    def test_fallback_key_values(self) -> None:
        result = ServiceResult(ok=True, op="other", data={"count": 3, "names": ["a"]})
        output = format_result(result)
        assert "count: 3" in output
        assert 'names: ["a"]' in output


class TestStyleForStatus:
    def test_known_status(self) -> None:
        assert style_for_status("fresh") == "sync.status.fresh"

    def test_empty(self) -> None:
        assert style_for_status("") == ""
