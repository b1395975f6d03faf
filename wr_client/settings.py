"""Connection settings for the remote control plane."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from wr_common.config.env import parse_bool_env, parse_float_env, parse_int_env
from wr_common.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_HOSTNAME = "app.terraform.io"
DEFAULT_BASE_PATH = "/api/v2"
DEFAULT_CREDENTIALS_FILE = Path("~/.terraform.d/credentials.tfrc.json")

MISSING_TOKEN_MESSAGE = (
    "required token could not be found. Please set the token explicitly, "
    "with the TFE_TOKEN environment variable, or in the CLI credentials file"
)


def normalize_hostname(value: str) -> str:
    host = value.strip()
    for prefix in ("https://", "http://"):
        if host.startswith(prefix):
            host = host[len(prefix):]
    return host.rstrip("/")


def read_credentials_token(path: Path, hostname: str) -> str | None:
    """Return the token stored for ``hostname`` in a CLI credentials file."""
    resolved = path.expanduser()
    if not resolved.exists():
        return None
    try:
        data = json.loads(resolved.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Unable to read credentials file %s: %s", resolved, exc)
        return None
    credentials = data.get("credentials") if isinstance(data, dict) else None
    if not isinstance(credentials, dict):
        return None
    entry = credentials.get(hostname)
    if isinstance(entry, dict) and entry.get("token"):
        return str(entry["token"])
    return None


class ClientSettings(BaseModel):
    """Hostname, credentials and transport tuning for ``TFEClient``."""

    hostname: str = Field(default=DEFAULT_HOSTNAME, description="Control plane hostname")
    token: str = Field(description="API token used as bearer credential")
    base_path: str = Field(default=DEFAULT_BASE_PATH, description="API path prefix")
    ssl_skip_verify: bool = Field(default=False, description="Disable TLS certificate verification")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request socket timeout")
    max_retries: int = Field(default=3, ge=0, description="Retries for 429/5xx and network errors")
    backoff_base: float = Field(default=0.5, ge=0, description="First transport retry delay in seconds")
    backoff_factor: float = Field(default=2.0, ge=1, description="Multiplier between transport retries")

    @field_validator("hostname")
    @classmethod
    def _validate_hostname(cls, value: str) -> str:
        host = normalize_hostname(value)
        if not host:
            raise ValueError("hostname must be non-empty")
        return host

    @property
    def base_url(self) -> str:
        return f"https://{self.hostname}{self.base_path.rstrip('/')}"

    @classmethod
    def from_env(
        cls,
        *,
        hostname: Optional[str] = None,
        token: Optional[str] = None,
        credentials_file: Optional[Path] = None,
        environ: Mapping[str, str] | None = None,
    ) -> "ClientSettings":
        """Resolve settings: explicit values, then environment, then credentials file."""
        env = os.environ if environ is None else environ
        resolved_host = hostname or env.get("TFE_HOSTNAME") or DEFAULT_HOSTNAME
        resolved_token = token or env.get("TFE_TOKEN")
        if not resolved_token:
            resolved_token = read_credentials_token(
                credentials_file or DEFAULT_CREDENTIALS_FILE,
                normalize_hostname(resolved_host),
            )
        if not resolved_token:
            raise ConfigurationError(MISSING_TOKEN_MESSAGE, context={"hostname": resolved_host})

        extra: dict[str, object] = {}
        skip_verify = parse_bool_env(env.get("TFE_SSL_SKIP_VERIFY"))
        if skip_verify is not None:
            extra["ssl_skip_verify"] = skip_verify
        timeout = parse_float_env(env.get("WR_HTTP_TIMEOUT_SECONDS"))
        if timeout is not None:
            extra["timeout_seconds"] = timeout
        retries = parse_int_env(env.get("WR_HTTP_MAX_RETRIES"))
        if retries is not None:
            extra["max_retries"] = retries
        try:
            return cls(hostname=resolved_host, token=resolved_token, **extra)
        except ValueError as exc:
            raise ConfigurationError(
                "Invalid client settings", context={"hostname": resolved_host}, cause=exc
            ) from exc
