"""Configuration management for mygitstats."""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console

console = Console()


class ConfigurationError(Exception):
    """Raised for missing or invalid credentials and config files."""


class CollectorConfig(BaseModel):
    """Collector behaviour loaded from mygitstats.config.json.

    Keys in the file are camelCase (``includeForks``, ``repoAllowlist``, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    include_forks: bool = False
    include_archived: bool = False
    org_allowlist: list[str] = Field(default_factory=list)
    repo_allowlist: list[str] = Field(default_factory=list)
    repo_blocklist: list[str] = Field(default_factory=list)
    max_concurrency: int = Field(default=5, ge=1, le=20)
    publish_private_repos: list[str] = Field(default_factory=list)
    app_owners: list[str] = Field(default_factory=list)
    contribution_days: int = Field(default=30, ge=1, le=365)


class Settings(BaseSettings):
    """Application settings from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="MYGITSTATS_",
        env_file=".env",
        extra="ignore",
    )

    github_token: str = ""
    app_tokens: str = ""
    data_dir: Path = Path("data")
    config_file: Path = Path("mygitstats.config.json")
    dataset_dir: Path = Path("public/data")
    collector_version: str = "local"
    app_id: str = ""
    app_private_key: str = ""

    def load_config(self) -> CollectorConfig:
        """Load collector configuration from the config file.

        The file may be JSON or YAML. A missing file yields the defaults.

        Returns:
            Validated collector configuration.

        Raises:
            ConfigurationError: If the file cannot be parsed or fails validation.
        """
        if not self.config_file.exists():
            console.print(f"[dim]\\[config] No {self.config_file} found - using defaults[/dim]")
            return CollectorConfig()

        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed config file {self.config_file}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {self.config_file} must contain an object")

        try:
            config = CollectorConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config file {self.config_file}:\n{e}") from e

        console.print(f"[dim]\\[config] Loaded {self.config_file}[/dim]")
        return config


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings loaded from environment and .env file.
    """
    return Settings()
