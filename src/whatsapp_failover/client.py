"""Outbound calls made by the relay: origin probe, origin forward, Graph API send."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from httpx import AsyncClient, HTTPError, InvalidURL

from .config import DEBUG_MESSAGE, RelayConfig
from .protocol import OutboundResult, build_text_message

logger = logging.getLogger(__name__)

# ValueError also covers requests httpx cannot build, e.g. non-ASCII header values.
_OUTBOUND_ERRORS = (HTTPError, InvalidURL, ValueError)


async def is_origin_healthy(client: AsyncClient, health_url: str) -> bool:
    """Return True when the origin health endpoint answers with a 2xx status."""
    if not health_url:
        return False
    try:
        response = await client.get(health_url)
    except _OUTBOUND_ERRORS as exc:
        logger.warning("Health probe failed for %s: %s", health_url, exc)
        return False
    return response.is_success


async def forward_payload(
    client: AsyncClient,
    webhook_url: str,
    payload: Any,
) -> OutboundResult:
    """POST the webhook payload to the origin once, without retrying.

    The body is ASCII-escaped JSON, so strings holding lone surrogates still
    serialize.
    """
    try:
        body = json.dumps(payload, allow_nan=False)
    except (ValueError, RecursionError) as exc:
        logger.warning("Cannot serialize webhook payload: %s", exc)
        return OutboundResult(error=str(exc) or exc.__class__.__name__)

    try:
        response = await client.post(
            webhook_url,
            content=body,
            headers={"Content-Type": "application/json"},
        )
    except _OUTBOUND_ERRORS as exc:
        logger.exception("Failed to forward webhook to %s: %s", webhook_url, exc)
        return OutboundResult(error=str(exc) or exc.__class__.__name__)
    logger.info("Forwarded webhook to origin (%s)", response.status_code)
    return OutboundResult(status_code=response.status_code)


async def send_whatsapp(
    client: AsyncClient,
    config: RelayConfig,
    to: str,
    text: str,
) -> bool:
    """Send a text message through the Graph API.

    Returns True on a 2xx answer and False otherwise; never raises.
    """
    try:
        response = await client.post(
            config.messages_url,
            json=build_text_message(to, text),
            headers={"Authorization": f"Bearer {config.whatsapp_token}"},
        )
    except _OUTBOUND_ERRORS as exc:
        logger.exception("WhatsApp send to %s failed: %s", to, exc)
        return False

    logger.info("WhatsApp send to %s returned %s", to, response.status_code)
    if not response.is_success:
        logger.warning("WhatsApp send rejected: %s", response.text)
        return False
    return True


async def send_once(config: RelayConfig, to: str, text: str) -> bool:
    async with AsyncClient(timeout=config.timeout_seconds) as client:
        return await send_whatsapp(client, config, to, text)


def _build_parser() -> argparse.ArgumentParser:  # pragma: no cover
    parser = argparse.ArgumentParser(
        description="Send one WhatsApp message using the relay configuration from the environment.",
    )
    parser.add_argument("--to", required=True, help="Destination phone number.")
    parser.add_argument("--text", default=DEBUG_MESSAGE, help="Message body.")
    return parser


def main(argv: list[str] | None = None) -> None:  # pragma: no cover
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        config = RelayConfig.from_env()
    except ValueError as exc:
        parser.error(str(exc))
    ok = asyncio.run(send_once(config, args.to, args.text))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":  # pragma: no cover
    main()
