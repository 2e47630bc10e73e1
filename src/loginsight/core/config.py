"""
Log Insight Configuration: connection settings for the client.

Reads from environment variables with sensible defaults.
No config files, no YAML. Just env vars (and an optional .env file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv

from loginsight.core.errors import ConfigError

load_dotenv()

_SCHEMES = ("http", "https")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class LogInsightConfig:
    """Where the server lives and how to log in to it."""

    host: str = ""
    user: str = ""
    password: str = ""
    scheme: str = "https"
    port: int = 9543
    ingestion_port: int = 9543
    timeout: float = 30.0  # seconds, per request
    verify_ssl: bool = True
    provider: str = "Local"  # auth provider; omitted from the handshake when empty

    @classmethod
    def from_env(cls) -> LogInsightConfig:
        return cls(
            host=os.getenv("LOGINSIGHT_HOST", ""),
            user=os.getenv("LOGINSIGHT_USER", ""),
            password=os.getenv("LOGINSIGHT_PASSWORD", ""),
            scheme=os.getenv("LOGINSIGHT_SCHEME", "https").lower(),
            port=int(os.getenv("LOGINSIGHT_PORT", "9543")),
            ingestion_port=int(os.getenv("LOGINSIGHT_INGESTION_PORT", "9543")),
            timeout=float(os.getenv("LOGINSIGHT_TIMEOUT", "30.0")),
            verify_ssl=_env_bool("LOGINSIGHT_VERIFY_SSL", "true"),
            provider=os.getenv("LOGINSIGHT_AUTH_PROVIDER", "Local"),
        )

    @classmethod
    def with_credentials(cls, host: str, user: str, password: str) -> LogInsightConfig:
        """Default ports and scheme, explicit host and credentials."""
        return cls(host=host, user=user, password=password)

    def with_overrides(self, **changes) -> LogInsightConfig:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    def validate(self) -> None:
        """Raise ConfigError if the settings cannot form a usable URL."""
        if not self.host:
            raise ConfigError("host is not set (LOGINSIGHT_HOST)")
        if self.scheme not in _SCHEMES:
            raise ConfigError(f"unsupported scheme {self.scheme!r}, expected http or https")
        for name in ("port", "ingestion_port"):
            value = getattr(self, name)
            if not 0 < value < 65536:
                raise ConfigError(f"{name} out of range: {value}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive: {self.timeout}")

    @property
    def api_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def ingestion_api_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.ingestion_port}"
