"""Tests for CLI commands."""

from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.console import Console

from mygitstats.cli import main
from mygitstats.schema import DailyFile, DailyRepoEntry, TrafficDay
from mygitstats.storage import DataStore, write_json


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point every setting at a temp directory and clear credentials."""
    monkeypatch.chdir(tmp_path)
    data_dir = tmp_path / "data"
    monkeypatch.setenv("MYGITSTATS_DATA_DIR", str(data_dir))
    monkeypatch.setenv("MYGITSTATS_CONFIG_FILE", str(tmp_path / "mygitstats.config.json"))
    monkeypatch.setenv("MYGITSTATS_DATASET_DIR", str(tmp_path / "public"))
    for name in ("GITHUB_TOKEN", "APP_TOKENS", "APP_ID", "APP_PRIVATE_KEY"):
        monkeypatch.delenv(f"MYGITSTATS_{name}", raising=False)
    monkeypatch.setattr("mygitstats.cli.console", Console(width=200))
    return data_dir


class TestCLI:
    """Tests for CLI commands."""

    def test_main_help(self) -> None:
        """Test main help output."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "GitHub statistics collector" in result.output
        for command in ("collect", "show", "build", "verify", "mint-tokens", "list"):
            assert command in result.output

    def test_collect_help(self) -> None:
        """Test collect command help."""
        runner = CliRunner()
        result = runner.invoke(main, ["collect", "--help"])

        assert result.exit_code == 0
        assert "--today" in result.output

    def test_show_help(self) -> None:
        """Test show command help."""
        runner = CliRunner()
        result = runner.invoke(main, ["show", "--help"])

        assert result.exit_code == 0
        assert "--days" in result.output

    def test_collect_without_credentials_fails(self, cli_env: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["collect"])

        assert result.exit_code == 1
        assert not cli_env.exists()

    def test_collect_rejects_bad_date(self, cli_env: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["collect", "--today", "2024-02-30"])

        assert result.exit_code == 2
        assert "--today" in result.output

    def test_mint_tokens_requires_app_credentials(self, cli_env: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["mint-tokens"])

        assert result.exit_code == 1

    def test_list_repos_no_data(self, cli_env: Path) -> None:
        """Test list command with no collected data."""
        runner = CliRunner()
        result = runner.invoke(main, ["list"])

        assert result.exit_code == 0
        assert "No repositories recorded" in result.output

    def test_show_no_data(self, cli_env: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["show"])

        assert result.exit_code == 0
        assert "No data found" in result.output

    def test_show_with_data(self, cli_env: Path) -> None:
        DataStore(cli_env).write_daily(
            DailyFile(
                date="2024-01-01",
                collected_at="2024-01-01T00:00:00.000Z",
                collector_version="t",
                repos={101: DailyRepoEntry(full_name="acme/widgets", traffic=TrafficDay(views=12))},
            )
        )

        runner = CliRunner()
        result = runner.invoke(main, ["show", "--repo", "acme/widgets"])

        assert result.exit_code == 0
        assert "acme/widgets" in result.output
        assert "12" in result.output

    def test_verify_empty(self, cli_env: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["verify"])

        assert result.exit_code == 0
        assert "No data files found" in result.output

    def test_verify_failure_exits_nonzero(self, cli_env: Path) -> None:
        write_json(DataStore(cli_env).daily_path("2024-01-01"), {"schemaVersion": 7})

        runner = CliRunner()
        result = runner.invoke(main, ["verify"])

        assert result.exit_code == 1
        assert "1 error(s) found" in result.output

    def test_build_writes_dataset(self, cli_env: Path, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["build"])

        assert result.exit_code == 0
        assert (tmp_path / "public" / "index.json").exists()
