"""Tests for configuration loading."""

from pathlib import Path

import pytest

from mygitstats.config import CollectorConfig, ConfigurationError, Settings


class TestLoadConfig:
    """Tests for Settings.load_config."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = Settings(config_file=tmp_path / "absent.json").load_config()

        assert config == CollectorConfig()
        assert config.max_concurrency == 5
        assert config.contribution_days == 30

    def test_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "mygitstats.config.json"
        path.write_text(
            '{"includeForks": true, "repoBlocklist": ["acme/old"], "maxConcurrency": 3}'
        )

        config = Settings(config_file=path).load_config()

        assert config.include_forks is True
        assert config.repo_blocklist == ["acme/old"]
        assert config.max_concurrency == 3

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "mygitstats.config.json"
        path.write_text('{"$schema": "./config.schema.json", "includeArchived": true}')

        config = Settings(config_file=path).load_config()

        assert config.include_archived is True
        assert config.model_dump() == CollectorConfig(include_archived=True).model_dump()

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "mygitstats.config.yaml"
        path.write_text("orgAllowlist:\n  - acme\npublishPrivateRepos:\n  - acme/secret\n")

        config = Settings(config_file=path).load_config()

        assert config.org_allowlist == ["acme"]
        assert config.publish_private_repos == ["acme/secret"]

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.json"
        path.write_text("")

        assert Settings(config_file=path).load_config() == CollectorConfig()

    @pytest.mark.parametrize(
        "content",
        [
            '{"maxConcurrency": 0}',
            '{"maxConcurrency": 21}',
            "[1, 2]",
            '{"includeForks": [unterminated',
        ],
    )
    def test_invalid_file(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "bad.json"
        path.write_text(content)

        with pytest.raises(ConfigurationError):
            Settings(config_file=path).load_config()


class TestSettings:
    """Tests for environment-driven settings."""

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("MYGITSTATS_GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("MYGITSTATS_DATA_DIR", str(tmp_path / "store"))

        settings = Settings()

        assert settings.github_token == "ghp_env"
        assert settings.data_dir == tmp_path / "store"
