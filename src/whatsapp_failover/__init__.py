"""WhatsApp webhook failover relay package."""

from .config import RelayConfig
from .server import FailoverRelay, create_app

__all__ = ["FailoverRelay", "RelayConfig", "create_app"]
