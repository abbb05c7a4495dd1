"""Tests for the domains command."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from assocsync.cli import cli


@pytest.mark.usefixtures("_isolated_project")
class TestDomainsCommand:
    def test_lists_defaults(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["domains"])
        assert result.exit_code == 0, result.output
        assert "OK: list_domains" in result.output
        for name in ("stats", "members", "events", "content"):
            assert name in result.output

    def test_json_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "domains"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["op"] == "list_domains"
        assert data["data"]["count"] == 4

    def test_config_file(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "assocsync.toml").write_text(
            '[domains.publications]\npath = "/pubs"\ninterval = 90\n'
        )
        result = cli_runner.invoke(cli, ["--json", "domains"])
        assert result.exit_code == 0, result.output
        items = {item["domain"]: item for item in json.loads(result.output)["data"]["items"]}
        assert items["publications"]["interval"] == 90
        assert items["publications"]["url"] == "http://localhost:8000/api/pubs"

    def test_examples(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["domains", "--examples"])
        assert result.exit_code == 0
        assert "assocsync --json domains" in result.output
