"""
Settings for runseq.

Values come from environment variables with the ``RUNSEQ_`` prefix, so
``RUNSEQ_EVENT_SERVER_PORT_NUMBER=9000`` overrides
``event_server_port_number``. Nodes started by a runtime engine receive
the coordinator address through the same variables.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from runseq.utils.logger import LogLevel

ENV_PREFIX = "RUNSEQ_"
EVENT_SERVER_IP_ADDRESS_ENV = f"{ENV_PREFIX}EVENT_SERVER_IP_ADDRESS"
EVENT_SERVER_PORT_NUMBER_ENV = f"{ENV_PREFIX}EVENT_SERVER_PORT_NUMBER"


class Settings(BaseSettings):
    """Process-wide runseq settings."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
    )

    # Coordinator address as seen by instrumented nodes
    event_server_ip_address: str = Field(default="127.0.0.1")
    event_server_port_number: int = Field(default=8765, ge=0, le=65535)

    # Client polling
    poll_interval: float = Field(
        default=0.005,
        gt=0,
        description="Seconds between dependency polls in instrumented code",
    )
    request_timeout: float = Field(
        default=5.0,
        gt=0,
        description="HTTP timeout for a single coordinator request",
    )

    # Run controller
    completion_poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between run sequence completion checks",
    )

    log_level: str = Field(default="silent")

    @property
    def event_server_url(self) -> str:
        return f"http://{self.event_server_ip_address}:{self.event_server_port_number}"

    @property
    def logger_level(self) -> LogLevel:
        return LogLevel.from_name(self.log_level)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def node_environment(
    host: str, port: int, extra: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """
    Build the environment handed to a node so its client can find the
    coordinator.
    """
    env = dict(extra or {})
    env[EVENT_SERVER_IP_ADDRESS_ENV] = host
    env[EVENT_SERVER_PORT_NUMBER_ENV] = str(port)
    return env
