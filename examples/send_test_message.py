"""Send one message with configuration taken from the environment."""

import asyncio

from whatsapp_failover import RelayConfig
from whatsapp_failover.client import send_once


def main() -> None:
    ok = asyncio.run(send_once(RelayConfig.from_env(), "5511999990001", "Teste"))
    print("sent" if ok else "failed")


if __name__ == "__main__":
    main()
