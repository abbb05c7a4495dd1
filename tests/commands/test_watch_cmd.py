"""Tests for the watch command."""

import functools

import httpx
import pytest
from click.testing import CliRunner

from assocsync.cli import cli
from assocsync.services.sync import SyncService


@pytest.mark.usefixtures("_isolated_project")
class TestWatchCommand:
    def test_unknown_domain_exits_nonzero(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["watch", "--domain", "nope", "--once"])
        assert result.exit_code == 1
        assert "Unknown or disabled domain(s): nope" in result.output

    def test_negative_duration_rejected(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["watch", "--duration", "-1"])
        assert result.exit_code == 2

    def test_unreachable_api_fails(
        self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        offline = functools.partial(SyncService, transport=httpx.MockTransport(refuse))
        monkeypatch.setattr("assocsync.services.sync.SyncService", offline)
        result = cli_runner.invoke(cli, ["watch", "-d", "stats", "--once"])
        assert result.exit_code == 1
        assert "Every watched domain ended in error" in result.output

    def test_examples(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["watch", "--examples"])
        assert result.exit_code == 0
        assert "assocsync watch --once" in result.output
