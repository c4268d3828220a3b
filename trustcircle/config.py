"""
Configuration for TrustCircle.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """Trust store configuration."""

    backend: str = "sqlite"  # sqlite
    db_path: str = "data/trust_circle.db"
    busy_timeout: float = 5.0


class InviteConfig(BaseModel):
    """Invite lifecycle configuration."""

    expiry_days: int = 30
    token_bytes: int = 32


class NetworkConfig(BaseModel):
    """Network graph traversal configuration."""

    default_depth: int = 2
    min_depth: int = 1
    max_depth: int = 3
    # Hard bounds against pathologically dense circles
    max_nodes: int = 500
    timeout: float = 5.0

    def clamp_depth(self, depth: int | None) -> int:
        """Clamp a requested depth into [min_depth, max_depth]."""
        if depth is None:
            return self.default_depth
        return min(max(depth, self.min_depth), self.max_depth)


class SweepConfig(BaseModel):
    """Expired-invite sweep configuration."""

    enabled: bool = True
    interval_seconds: float = 3600.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    invites: InviteConfig = Field(default_factory=InviteConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            TRUSTCIRCLE_STORE_BACKEND: Store backend (sqlite)
            TRUSTCIRCLE_DB_PATH: SQLite database path
            TRUSTCIRCLE_DB_BUSY_TIMEOUT: Seconds to wait on a locked database
            TRUSTCIRCLE_INVITE_EXPIRY_DAYS: Days before a pending invite expires
            TRUSTCIRCLE_INVITE_TOKEN_BYTES: Randomness in invite tokens
            TRUSTCIRCLE_NETWORK_DEFAULT_DEPTH: Default network depth
            TRUSTCIRCLE_NETWORK_MIN_DEPTH: Smallest depth the API accepts
            TRUSTCIRCLE_NETWORK_MAX_DEPTH: Largest depth the API accepts
            TRUSTCIRCLE_NETWORK_MAX_NODES: Node bound for one traversal
            TRUSTCIRCLE_NETWORK_TIMEOUT: Seconds bound for one traversal
            TRUSTCIRCLE_SWEEP_ENABLED: Run the expiry sweep in the background
            TRUSTCIRCLE_SWEEP_INTERVAL_SECONDS: Seconds between sweeps
            TRUSTCIRCLE_LOG_LEVEL: Log level
            TRUSTCIRCLE_LOG_TO_FILE: Write the JSON audit file
            TRUSTCIRCLE_LOG_DIR: Directory for the audit file
            TRUSTCIRCLE_LOG_FILE_ROTATION: Audit file rotation size
            TRUSTCIRCLE_LOG_FILE_RETENTION: How long rotated files are kept
            TRUSTCIRCLE_LOG_COMPRESSION: Compression for rotated files
            TRUSTCIRCLE_LOG_SERIALIZE: Serialize audit records as JSON
        """
        # Load .env file if provided or exists
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            # If value is empty string, return default
            if value == "":
                return default
            # Convert boolean strings
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            # Convert numeric strings
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            store=StoreConfig(
                backend=get_env("TRUSTCIRCLE_STORE_BACKEND", "sqlite"),
                db_path=get_env("TRUSTCIRCLE_DB_PATH", "data/trust_circle.db"),
                busy_timeout=get_env("TRUSTCIRCLE_DB_BUSY_TIMEOUT", 5.0),
            ),
            invites=InviteConfig(
                expiry_days=get_env("TRUSTCIRCLE_INVITE_EXPIRY_DAYS", 30),
                token_bytes=get_env("TRUSTCIRCLE_INVITE_TOKEN_BYTES", 32),
            ),
            network=NetworkConfig(
                default_depth=get_env("TRUSTCIRCLE_NETWORK_DEFAULT_DEPTH", 2),
                min_depth=get_env("TRUSTCIRCLE_NETWORK_MIN_DEPTH", 1),
                max_depth=get_env("TRUSTCIRCLE_NETWORK_MAX_DEPTH", 3),
                max_nodes=get_env("TRUSTCIRCLE_NETWORK_MAX_NODES", 500),
                timeout=get_env("TRUSTCIRCLE_NETWORK_TIMEOUT", 5.0),
            ),
            sweep=SweepConfig(
                enabled=get_env("TRUSTCIRCLE_SWEEP_ENABLED", True),
                interval_seconds=get_env("TRUSTCIRCLE_SWEEP_INTERVAL_SECONDS", 3600.0),
            ),
            logging=LoggingConfig(
                level=get_env("TRUSTCIRCLE_LOG_LEVEL", "INFO"),
                log_to_file=get_env("TRUSTCIRCLE_LOG_TO_FILE", True),
                log_dir=get_env("TRUSTCIRCLE_LOG_DIR", "logs"),
                file_rotation=get_env("TRUSTCIRCLE_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("TRUSTCIRCLE_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("TRUSTCIRCLE_LOG_COMPRESSION", "zip"),
                serialize=get_env("TRUSTCIRCLE_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        # Merge: env vars override YAML, section by section
        final_dict = {**config_dict}
        default = cls()
        for section in ("store", "invites", "network", "sweep", "logging"):
            if getattr(env_config, section) != getattr(default, section):
                final_dict[section] = getattr(env_config, section).model_dump()

        return cls(**final_dict) if final_dict else env_config
