"""Configuration management for drift.

Configuration is loaded from ~/.drift/config.toml with sensible defaults.

Example config file:
    [general]
    default_window = "12h"
    theme = "dark"
    session_gap_minutes = 30

    [[repos]]
    path = "~/code/api"
    name = "api"

    [agents]
    authors = ["claude", "copilot"]
    message_patterns = ["co-authored-by:.*claude"]
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

# Use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = "12h"
DEFAULT_SESSION_GAP_MINUTES = 30

DEFAULT_AGENT_AUTHORS = [
    "claude",
    "copilot",
    "devin",
    "codex",
    "cursor-agent",
    "[bot]",
]

DEFAULT_MESSAGE_PATTERNS = [
    r"co-authored-by:.*claude",
    r"co-authored-by:.*copilot",
    r"generated with \[?claude code",
    r"\[agent\]",
]


class ConfigError(Exception):
    """Configuration could not be read or is invalid."""


class GeneralConfig(BaseModel):
    """General scan and display settings."""

    default_window: str = DEFAULT_WINDOW
    theme: Literal["dark", "light"] = "dark"
    session_gap_minutes: float = Field(default=DEFAULT_SESSION_GAP_MINUTES, gt=0)


class RepoConfig(BaseModel):
    """A repository to scan for agent activity."""

    path: str
    name: str

    def resolved_path(self) -> Path:
        """Get the absolute path with ``~`` expanded."""
        return Path(self.path).expanduser().resolve()


class AgentConfig(BaseModel):
    """Rules used to recognise agent-authored commits."""

    authors: list[str] = Field(default_factory=lambda: list(DEFAULT_AGENT_AUTHORS))
    message_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MESSAGE_PATTERNS)
    )

    @field_validator("message_patterns")
    @classmethod
    def _check_patterns(cls, patterns: list[str]) -> list[str]:
        for pattern in patterns:
            try:
                re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"invalid message pattern {pattern!r}: {e}") from e
        return patterns


class Config(BaseModel):
    """Main configuration model for drift."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    repos: list[RepoConfig] = Field(default_factory=list)
    agents: AgentConfig = Field(default_factory=AgentConfig)

    def get_repo(self, name: str) -> RepoConfig | None:
        """Find a configured repo by display name (case-insensitive)."""
        for repo in self.repos:
            if repo.name.lower() == name.lower():
                return repo
        return None


def get_config_dir() -> Path:
    """Get the drift home directory.

    Returns:
        Path to ~/.drift/
    """
    return Path.home() / ".drift"


def get_config_path() -> Path:
    """Get the config file path.

    Returns:
        Path to ~/.drift/config.toml
    """
    return get_config_dir() / "config.toml"


def config_exists(config_path: Path | None = None) -> bool:
    """Check whether a config file has been written."""
    return (config_path or get_config_path()).exists()


def get_default_config() -> Config:
    """Get the default configuration (no repos, built-in agent rules)."""
    return Config()


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from a TOML file.

    If the file doesn't exist, returns the default configuration.
    Missing sections and keys fall back to defaults.

    Args:
        config_path: Path to the config file. Defaults to ~/.drift/config.toml.

    Returns:
        Config object with loaded or default values.

    Raises:
        ConfigError: If the file can't be read, parsed or validated.
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        return get_default_config()

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        return _merge_config(get_default_config(), data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e


def _merge_config(default: Config, data: dict[str, Any]) -> Config:
    """Merge loaded config data with defaults.

    Args:
        default: Default configuration.
        data: Loaded TOML data.

    Returns:
        Merged Config object.
    """
    general_data = data.get("general", {})
    general = GeneralConfig(
        default_window=general_data.get("default_window", default.general.default_window),
        theme=general_data.get("theme", default.general.theme),
        session_gap_minutes=general_data.get(
            "session_gap_minutes", default.general.session_gap_minutes
        ),
    )

    repos = [RepoConfig(**repo) for repo in data.get("repos", [])]

    agents_data = data.get("agents", {})
    agents = AgentConfig(
        authors=agents_data.get("authors", default.agents.authors),
        message_patterns=agents_data.get(
            "message_patterns", default.agents.message_patterns
        ),
    )

    return Config(general=general, repos=repos, agents=agents)


def _toml_string(value: str) -> str:
    # Basic TOML string escaping
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _toml_list(values: list[str]) -> str:
    return "[" + ", ".join(_toml_string(v) for v in values) + "]"


def render_config(config: Config) -> str:
    """Render a config as TOML text."""
    lines = [
        "[general]",
        f"default_window = {_toml_string(config.general.default_window)}",
        f"theme = {_toml_string(config.general.theme)}",
        f"session_gap_minutes = {config.general.session_gap_minutes:g}",
        "",
    ]

    for repo in config.repos:
        lines.append("[[repos]]")
        lines.append(f"path = {_toml_string(repo.path)}")
        lines.append(f"name = {_toml_string(repo.name)}")
        lines.append("")

    lines.append("[agents]")
    lines.append(f"authors = {_toml_list(config.agents.authors)}")
    lines.append(f"message_patterns = {_toml_list(config.agents.message_patterns)}")

    return "\n".join(lines) + "\n"


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Write a config to disk, creating the directory if needed.

    Returns:
        The path written to.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(render_config(config))
    logger.debug("Wrote config to %s", config_path)
    return config_path


def add_repo(repo_path: str, name: str | None = None, config_path: Path | None = None) -> Config:
    """Add a repository to the config file.

    A repo whose resolved path is already configured is left alone.

    Args:
        repo_path: Path to the repository, as the user typed it.
        name: Display name. Defaults to the directory name.
        config_path: Config file to update. Defaults to ~/.drift/config.toml.

    Returns:
        The updated Config.
    """
    config = load_config(config_path)
    abs_path = Path(repo_path).expanduser().resolve()

    if any(repo.resolved_path() == abs_path for repo in config.repos):
        return config

    config.repos.append(RepoConfig(path=repo_path, name=name or abs_path.name))
    save_config(config, config_path)
    return config
