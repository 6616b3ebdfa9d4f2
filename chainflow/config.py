"""Configuration for chainflow

Supports TOML configuration files:
    [engine]
    max_concurrency = 8      # bound for parallel fan-out and batch
    return_partial = false
    tags = ["tutorial"]

    [logging]
    print_level = "INFO"
    logfile_level = "DEBUG"
    enable_file = false

The composition engine never reads this module on its own. Callers turn
the engine settings into an ExecutionContext explicitly:

    from chainflow.config import config
    from chainflow.runnable import ExecutionContext

    context = ExecutionContext.from_settings(config.engine)
"""
import threading
import tomllib
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).resolve().parent.parent


PROJECT_ROOT = get_project_root()


class EngineSettings(BaseModel):
    """Default execution settings for composed runnables."""

    max_concurrency: Optional[int] = Field(
        None, ge=1, description="Maximum concurrent sub-invocations (None = unbounded)"
    )
    return_partial: bool = Field(
        False, description="Attach completed results to CancellationError"
    )
    tags: List[str] = Field(default_factory=list, description="Tags added to every run")


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    print_level: str = Field("INFO", description="Log level for console output")
    logfile_level: str = Field("DEBUG", description="Log level for file output")
    name: Optional[str] = Field(None, description="Prefix name for log file")
    enable_console: bool = Field(True, description="Whether to log to stderr")
    enable_file: bool = Field(False, description="Whether to log to logs/<name>.log")


class AppConfig(BaseModel):
    """Application configuration."""

    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_config(path: Union[str, Path]) -> AppConfig:
    """Load and validate a TOML configuration file.

    Args:
        path: Path to the TOML file

    Returns:
        Validated AppConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid TOML or holds invalid values
    """
    path = Path(path)
    try:
        with path.open("rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML format in {path}: {e}") from e

    try:
        return AppConfig(**raw_config)
    except ValidationError as e:
        raise ValueError(f"Configuration validation failed for {path}: {e}") from e


class Config:
    """
    Configuration manager with singleton pattern.

    Usage:
        from chainflow.config import config
        settings = config.engine
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize configuration (only once)."""
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self._load_config()
                    self._initialized = True

    @staticmethod
    def _get_config_path() -> Optional[Path]:
        """
        Get configuration file path.

        Returns:
            Path to config.toml or config.example.toml, or None when neither exists
        """
        config_dir = PROJECT_ROOT / "config"
        for candidate in ("config.toml", "config.example.toml"):
            config_path = config_dir / candidate
            if config_path.exists():
                return config_path
        return None

    def _load_config(self):
        """Load configuration, using built-in defaults when no file exists."""
        config_path = self._get_config_path()
        if config_path is None:
            self._config = AppConfig()
        else:
            self._config = load_config(config_path)

    @property
    def engine(self) -> EngineSettings:
        return self._config.engine

    @property
    def logging(self) -> LoggingSettings:
        return self._config.logging

    def reload(self):
        """Reload configuration from file (useful for testing)."""
        with self._lock:
            self._load_config()


# Global singleton instance
config = Config()
