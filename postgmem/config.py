"""
Configuration module for PostgMem.

Loads application settings from config.yaml and secrets from environment variables.
"""

import logging
import os
import contextvars
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Context variable for tool name logging
tool_context = contextvars.ContextVar("tool_name", default=None)


class ToolLogFilter(logging.Filter):
    """Filter to inject the executing tool name into log records."""
    def filter(self, record):
        tool_name = tool_context.get()
        if tool_name is not None:
            record.tool_info = f" [{tool_name}]"
        else:
            record.tool_info = ""
        return True


# Default config file path
CONFIG_FILE = Path(__file__).parent.parent / "config.yaml"

# Migration scripts shipped with the package
DEFAULT_MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def _load_yaml_config() -> dict:
    """Load configuration from YAML file."""
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE) as f:
            return yaml.safe_load(f) or {}
    return {}


# Load YAML config once at module import
_yaml_config = _load_yaml_config()


def _get_yaml(section: str, key: str, default=None):
    """Get a value from the YAML config."""
    # A section with only commented-out keys loads as None
    return (_yaml_config.get(section) or {}).get(key, default)


@dataclass
class DatabaseConfig:
    """PostgreSQL connection settings."""
    # Secret from .env (contains credentials)
    url: str = field(default_factory=lambda: os.getenv("POSTGMEM_DATABASE_URL", ""))

    # Pool settings from YAML
    min_pool_size: int = field(
        default_factory=lambda: _get_yaml("database", "min_pool_size", 1)
    )
    max_pool_size: int = field(
        default_factory=lambda: _get_yaml("database", "max_pool_size", 10)
    )
    command_timeout: float = field(
        default_factory=lambda: _get_yaml("database", "command_timeout", 60)
    )


@dataclass
class EmbeddingConfig:
    """Embedding backend settings."""
    provider: Literal["ollama", "local"] = field(
        default_factory=lambda: _get_yaml("embeddings", "provider", "ollama")
    )
    # .env wins over YAML so deployments can point at a different backend
    api_url: str = field(default_factory=lambda: _get_embeddings_url())
    model: str = field(
        default_factory=lambda: _get_yaml("embeddings", "model", "all-minilm")
    )
    # Seconds
    timeout: float = field(
        default_factory=lambda: _get_yaml("embeddings", "timeout", 10)
    )
    # Must match the vector(N) column in the memories table
    dimension: int = field(
        default_factory=lambda: _get_yaml("embeddings", "dimension", 384)
    )
    local_model: str = field(
        default_factory=lambda: _get_yaml("embeddings", "local_model", "all-MiniLM-L6-v2")
    )


def _get_embeddings_url() -> str:
    """Get the embedding API URL from .env or YAML."""
    env_url = os.getenv("POSTGMEM_EMBEDDINGS_URL", "")
    if env_url:
        return env_url.strip()
    return _get_yaml("embeddings", "api_url", "http://localhost:11434")


@dataclass
class MigrationConfig:
    """Schema migration settings."""
    directory: str = field(
        default_factory=lambda: _get_yaml("migrations", "directory", None) or str(DEFAULT_MIGRATIONS_DIR)
    )


@dataclass
class AppConfig:
    """Application settings from YAML."""
    # Logging
    log_level: str = field(
        default_factory=lambda: _get_yaml("logging", "level", "INFO")
    )


@dataclass
class Config:
    """Main configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    embeddings: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    migrations: MigrationConfig = field(default_factory=MigrationConfig)
    app: AppConfig = field(default_factory=AppConfig)

    def setup_logging(self) -> logging.Logger:
        """Configure and return the application logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        if root.handlers:
            for handler in list(root.handlers):
                root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, self.app.log_level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s%(tool_info)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Add filter to the handler created by basicConfig
        for handler in logging.getLogger().handlers:
            handler.addFilter(ToolLogFilter())

        return logging.getLogger("postgmem")

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []

        if not self.database.url:
            errors.append("POSTGMEM_DATABASE_URL is required")

        if self.database.min_pool_size < 1:
            errors.append("database.min_pool_size must be at least 1")
        if self.database.max_pool_size < self.database.min_pool_size:
            errors.append("database.max_pool_size must be >= database.min_pool_size")

        if self.embeddings.provider not in ("ollama", "local"):
            errors.append(f"Unknown embeddings.provider: {self.embeddings.provider}")
        elif self.embeddings.provider == "ollama" and not self.embeddings.api_url:
            errors.append("embeddings.api_url is required for the ollama provider")

        if self.embeddings.dimension <= 0:
            errors.append("embeddings.dimension must be positive")

        if not Path(self.migrations.directory).is_dir():
            errors.append(f"Migrations directory not found: {self.migrations.directory}")

        return errors


# Global configuration instance
config = Config()
