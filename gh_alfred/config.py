"""Configuration management for gh-alfred."""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import toml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .utils.error_handling import ConfigurationError


def config_home() -> Path:
    """Get the gh-alfred configuration directory."""
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    return Path(base) / "gh-alfred"


def cache_home() -> Path:
    """Get the gh-alfred cache directory (log file lives here)."""
    base = os.environ.get("XDG_CACHE_HOME") or os.path.expanduser("~/.cache")
    return Path(base) / "gh-alfred"


def _expand(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    return os.path.expanduser(os.path.expandvars(v))


class GitHubConfig(BaseModel):
    """Configuration for the GitHub API clients."""

    token: Optional[str] = Field(default=None, description="GitHub API token")
    graphql_url: str = Field(default="https://api.github.com/graphql")
    api_url: str = Field(default="https://api.github.com")
    page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Repositories requested per GraphQL page",
    )
    timeout_seconds: float = Field(default=30.0, gt=0)


class CratesConfig(BaseModel):
    """Configuration for the crates.io client."""

    api_url: str = Field(default="https://crates.io")
    timeout_seconds: float = Field(default=10.0, gt=0)


class CacheConfig(BaseModel):
    """Configuration for the local cache database and sync state."""

    db_path: Optional[str] = Field(
        default=None,
        description="Path to the SQLite cache database (required)",
    )
    state_path: str = Field(
        default=str(config_home() / "state.toml"),
        description="File holding the last refresh start time",
    )
    stale_threshold_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Refresh the cache when the last refresh started longer ago than this",
    )
    result_limit: int = Field(default=5, ge=1, le=50)

    @field_validator("db_path", "state_path")
    @classmethod
    def expand_path(cls, v):
        """Expand user paths and environment variables."""
        return _expand(v)


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    log_file: Optional[str] = Field(default=str(cache_home() / "gh-alfred.log"))
    level: str = Field(default="INFO", description="Minimum level written to the log file")

    @field_validator("log_file")
    @classmethod
    def expand_path(cls, v):
        """Expand user paths and environment variables."""
        return _expand(v)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        """Normalize and check the level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class Config(BaseModel):
    """Main configuration class."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    crates: CratesConfig = Field(default_factory=CratesConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = Field(default=False, description="Pretty-print JSON output")


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _db_path_from_url(url: str) -> str:
    """Accept both plain paths and sqlite URLs (sqlite:path, sqlite://path)."""
    for prefix in ("sqlite://", "sqlite:"):
        if url.startswith(prefix):
            return url[len(prefix):]
    return url


class ConfigManager:
    """Manages configuration loading and access."""

    def __init__(self, config_path: Optional[str] = None, load_env: bool = True):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file. If None, searches standard locations.
            load_env: Read a .env file from the working directory before applying
                environment overrides
        """
        self.config_path = config_path or self._find_config_file()
        self._load_env = load_env
        self._config: Optional[Config] = None

    def _find_config_file(self) -> str:
        """Find configuration file in standard locations."""
        search_paths = [
            str(config_home() / "config.toml"),
            "gh_alfred.toml",
        ]

        for path in search_paths:
            if os.path.exists(path):
                return path

        return search_paths[0]

    @property
    def config(self) -> Config:
        """Get configuration, loading if necessary."""
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def _load_config(self) -> Config:
        """Load configuration from TOML file and apply environment overrides."""
        if self._load_env:
            load_dotenv()

        config_data = {}
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    config_data = toml.load(f)
            except (toml.TomlDecodeError, OSError) as e:
                raise ConfigurationError(
                    f"Invalid configuration file {self.config_path}: {e}"
                ) from e

        try:
            config = Config(**config_data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration file {self.config_path}: {e}"
            ) from e

        return self._apply_env(config)

    def _apply_env(self, config: Config) -> Config:
        """Override file settings with environment variables."""
        token = os.environ.get("GITHUB_API_TOKEN")
        if token:
            config.github.token = token

        db_path = os.environ.get("GH_ALFRED_DB_PATH") or os.environ.get("DATABASE_URL")
        if db_path:
            config.cache.db_path = _expand(_db_path_from_url(db_path))

        debug = os.environ.get("GH_ALFRED_DEBUG")
        if debug is not None:
            config.debug = _env_flag(debug)

        return config

    def require_github_token(self) -> str:
        """Get the GitHub token or fail with a configuration error."""
        token = self.config.github.token
        if not token:
            raise ConfigurationError(
                "GitHub API token is not configured "
                "(set GITHUB_API_TOKEN or [github].token)"
            )
        return token

    def require_db_path(self) -> str:
        """Get the cache database path or fail with a configuration error."""
        db_path = self.config.cache.db_path
        if not db_path:
            raise ConfigurationError(
                "Cache database location is not configured "
                "(set GH_ALFRED_DB_PATH or [cache].db_path)"
            )
        return db_path

    def state_store(self) -> "StateStore":
        """Get the store for the persisted sync state."""
        return StateStore(self.config.cache.state_path)

    def reload(self):
        """Reload configuration."""
        self._config = None


# === Sync state ===


class SyncState(BaseModel):
    """The single persisted record coordinating background refreshes."""

    last_update_start_time: Optional[datetime] = Field(
        default=None,
        description="When the most recent cache refresh was started",
    )

    @field_validator("last_update_start_time")
    @classmethod
    def ensure_aware(cls, v):
        """Treat naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class StateStore:
    """Reads and durably writes the sync state file."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()

    def load(self) -> SyncState:
        """Load the sync state; a missing file is a fresh state.

        Raises:
            ConfigurationError: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            return SyncState()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = toml.load(f)
            return SyncState(**data)
        except (toml.TomlDecodeError, ValidationError, OSError) as e:
            raise ConfigurationError(f"Corrupt state file {self.path}: {e}") from e

    def save(self, state: SyncState) -> None:
        """Persist the state atomically; returns once the data is on disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = toml.dumps(state.model_dump(mode="json", exclude_none=True))

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
