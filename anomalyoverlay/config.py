"""Configuration management for the anomaly overlay service.

This module provides a centralized configuration loader that:
1. Checks environment variables first
2. Falls back to YAML configuration files
3. Falls back to the defaults declared on the models
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field


class AWSConfig(BaseModel):
    """AWS credentials and region."""
    region: str = "us-east-1"
    profile: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = Field(default=None, repr=False)
    session_token: Optional[str] = Field(default=None, repr=False)


class S3Config(BaseModel):
    """Destination for overlay artifacts."""
    bucket_name: Optional[str] = None
    overlay_prefix: str = "anomaly-overlays"


class LookoutConfig(BaseModel):
    """Lookout for Vision client and canonical resolution."""
    canonical_width: int = Field(default=2268, gt=0)
    canonical_height: int = Field(default=4032, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)


class ServerConfig(BaseModel):
    """HTTP listener settings."""
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    max_upload_mb: int = Field(default=50, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Config(BaseModel):
    """Main configuration object."""
    environment: str = "dev"
    app_name: str = "anomaly-overlay"
    aws: AWSConfig = Field(default_factory=AWSConfig)
    s3: S3Config = Field(default_factory=S3Config)
    lookout: LookoutConfig = Field(default_factory=LookoutConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(environment: Optional[str] = None, config_dir: Optional[str] = None) -> Config:
    """Load configuration from environment variables and YAML files.

    Args:
        environment: Environment name (dev/prod). If None, uses ENVIRONMENT env var.
        config_dir: Directory holding ``{environment}.yml``. Defaults to ``config/``
            next to the package.

    Returns:
        Loaded configuration object. A missing YAML file is not an error.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    env = environment or os.getenv("ENVIRONMENT", "dev")

    base = Path(config_dir) if config_dir else Path(__file__).parent.parent / "config"
    config_file = base / f"{env}.yml"

    config_data: Dict[str, Any] = {}
    if config_file.exists():
        with open(config_file, "r") as f:
            config_data = yaml.safe_load(f) or {}
    config_data.setdefault("environment", env)

    config_data = _apply_env_overrides(config_data)

    return Config(**config_data)


def _apply_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration data."""
    # AWS overrides
    if os.getenv("AWS_REGION"):
        config_data.setdefault("aws", {})["region"] = os.getenv("AWS_REGION")
    if os.getenv("AWS_PROFILE"):
        config_data.setdefault("aws", {})["profile"] = os.getenv("AWS_PROFILE")
    if os.getenv("AWS_ACCESS_KEY_ID"):
        config_data.setdefault("aws", {})["access_key_id"] = os.getenv("AWS_ACCESS_KEY_ID")
    if os.getenv("AWS_SECRET_ACCESS_KEY"):
        config_data.setdefault("aws", {})["secret_access_key"] = os.getenv("AWS_SECRET_ACCESS_KEY")
    if os.getenv("AWS_SESSION_TOKEN"):
        config_data.setdefault("aws", {})["session_token"] = os.getenv("AWS_SESSION_TOKEN")

    # S3 overrides
    if os.getenv("BUCKET_NAME"):
        config_data.setdefault("s3", {})["bucket_name"] = os.getenv("BUCKET_NAME")
    if os.getenv("OVERLAY_PREFIX") is not None:
        config_data.setdefault("s3", {})["overlay_prefix"] = os.getenv("OVERLAY_PREFIX")

    # Lookout overrides
    for env_name, key, cast in (
        ("CANONICAL_WIDTH", "canonical_width", int),
        ("CANONICAL_HEIGHT", "canonical_height", int),
        ("LOOKOUT_CONNECT_TIMEOUT", "connect_timeout", float),
        ("LOOKOUT_READ_TIMEOUT", "read_timeout", float),
    ):
        value = os.getenv(env_name)
        if value:
            config_data.setdefault("lookout", {})[key] = cast(value)

    # Server overrides
    if os.getenv("PORT"):
        config_data.setdefault("server", {})["port"] = int(os.getenv("PORT"))
    if os.getenv("HOST"):
        config_data.setdefault("server", {})["host"] = os.getenv("HOST")
    if os.getenv("MAX_UPLOAD_MB"):
        config_data.setdefault("server", {})["max_upload_mb"] = int(os.getenv("MAX_UPLOAD_MB"))

    if os.getenv("LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = os.getenv("LOG_LEVEL").upper()

    return config_data


def configure_logging(config: LoggingConfig) -> None:
    """Configure process-wide logging once at startup."""
    logging.basicConfig(level=getattr(logging, config.level.upper(), logging.INFO), format=config.format)
