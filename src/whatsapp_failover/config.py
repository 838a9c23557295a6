"""Configuration for the failover relay."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_GRAPH_API_BASE = "https://graph.facebook.com/v19.0"

AUTOREPLY_ENABLED_VALUE = "1"

DEBUG_RECIPIENT = "5511967512034"
DEBUG_MESSAGE = "🔧 Teste via relay de failover"

_REQUIRED_ENV_VARS = (
    "VERIFY_TOKEN",
    "ORIGIN_WEBHOOK_URL",
    "ORIGIN_HEALTH_URL",
    "WHATSAPP_TOKEN",
    "PHONE_NUMBER_ID",
)


@dataclass(frozen=True)
class RelayConfig:
    """Read-only settings shared by every request."""

    verify_token: str = ""
    origin_webhook_url: str = ""
    origin_health_url: str = ""
    whatsapp_token: str = ""
    phone_number_id: str = ""
    send_autoreply: bool = False
    graph_api_base: str = DEFAULT_GRAPH_API_BASE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def messages_url(self) -> str:
        return f"{self.graph_api_base.rstrip('/')}/{self.phone_number_id}/messages"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelayConfig:
        """Build the config from environment variables.

        Missing values are only warned about; they show up later as failed
        outbound calls.
        """
        env = os.environ if environ is None else environ
        missing = [name for name in _REQUIRED_ENV_VARS if not env.get(name)]
        if missing:
            logger.warning("Missing relay configuration: %s", ", ".join(missing))

        raw_timeout = env.get("RELAY_TIMEOUT_SECONDS")
        timeout = DEFAULT_TIMEOUT_SECONDS
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as exc:
                raise ValueError(f"RELAY_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}.") from exc

        return cls(
            verify_token=env.get("VERIFY_TOKEN", ""),
            origin_webhook_url=env.get("ORIGIN_WEBHOOK_URL", ""),
            origin_health_url=env.get("ORIGIN_HEALTH_URL", ""),
            whatsapp_token=env.get("WHATSAPP_TOKEN", ""),
            phone_number_id=env.get("PHONE_NUMBER_ID", ""),
            send_autoreply=env.get("SEND_AUTOREPLY") == AUTOREPLY_ENABLED_VALUE,
            graph_api_base=env.get("GRAPH_API_BASE") or DEFAULT_GRAPH_API_BASE,
            timeout_seconds=timeout,
        )
