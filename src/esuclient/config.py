"""Configuration loading and Pydantic models for the ESU client."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_BUFFER_SIZE = 4 * 1024 * 1024


class ConnectionConfig(BaseModel):
    """Service endpoint and credential configuration."""

    host: str = "localhost"
    port: int = 80
    protocol: str | None = None
    uid: str = ""
    shared_secret: str = ""
    context: str = "/rest"
    timeout: float = 60.0
    server_offset: int = 0
    utf8: bool = False
    custom_headers: dict[str, str] = Field(default_factory=dict)


class TransferConfig(BaseModel):
    """Chunked transfer configuration."""

    buffer_size: int = Field(default=DEFAULT_BUFFER_SIZE, gt=0)


class LoggingConfig(BaseModel):
    """Log level and output format."""

    level: str = "INFO"
    format: str = "text"


class ObservabilityConfig(BaseModel):
    """Metrics configuration."""

    metrics: bool = False


class EsuClientConfig(BaseModel):
    """Top-level ESU client configuration."""

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_connection(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the connection section from YAML data.

    Handles the nested credentials block: connection.credentials.uid -> uid,
    connection.credentials.secret -> shared_secret.
    """
    if data is None:
        return {}
    result = {
        key: data[key]
        for key in ("host", "port", "protocol", "context", "timeout", "server_offset", "utf8")
        if key in data
    }
    credentials = data.get("credentials")
    if isinstance(credentials, dict):
        result["uid"] = credentials.get("uid", "")
        result["shared_secret"] = credentials.get("secret", "")
    headers = data.get("custom_headers")
    if isinstance(headers, dict):
        result["custom_headers"] = {str(k): str(v) for k, v in headers.items()}
    return result


def _parse_section(data: dict[str, Any] | None) -> dict[str, Any]:
    """Pass a flat section through; a missing section yields defaults."""
    if data is None:
        return {}
    return dict(data)


def load_config(path: Path) -> EsuClientConfig:
    """Load an EsuClientConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated EsuClientConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If a value has the wrong type.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return EsuClientConfig(
        connection=ConnectionConfig(**_parse_connection(raw.get("connection"))),
        transfer=TransferConfig(**_parse_section(raw.get("transfer"))),
        logging=LoggingConfig(**_parse_section(raw.get("logging"))),
        observability=ObservabilityConfig(**_parse_section(raw.get("observability"))),
    )
