"""Failover relay routes and application factory."""

from __future__ import annotations

import argparse
import hmac
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import PlainTextResponse
from httpx import AsyncClient
from starlette.datastructures import QueryParams
from starlette.types import ASGIApp, Receive, Scope, Send

from .client import forward_payload, is_origin_healthy, send_whatsapp
from .config import DEBUG_MESSAGE, DEBUG_RECIPIENT, RelayConfig
from .protocol import OFFLINE_MESSAGE, extract_phones

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook"
DEBUG_SEND_PATH = "/_debug/testgraph"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def _first(params: QueryParams, key: str) -> str | None:
    values = params.getlist(key)
    return values[0] if values else None


class RequestLogMiddleware:
    """ASGI middleware that logs the method and path of every HTTP request."""

    def __init__(self, app: ASGIApp) -> None:
        self._app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") == "http":
            logger.info("%s %s", scope.get("method"), scope.get("path") or "/")
        await self._app(scope, receive, send)


class FailoverRelay:
    """Forward webhooks to the origin, or auto-reply to senders while it is down.

    Every request is handled independently. The only state held here is the
    read-only config and the shared HTTP client.
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        app: FastAPI | None = None,
        client: AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client if client is not None else AsyncClient(timeout=config.timeout_seconds)

        if app is not None:
            self.install(app)

    @property
    def config(self) -> RelayConfig:
        return self._config

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def install(self, app: FastAPI) -> None:
        """Register the relay routes and request logging on an existing app.

        Routes:

        - `GET /webhook` answers the subscription challenge
        - `POST /webhook` forwards or auto-replies
        - `/_debug/testgraph` (any method) sends a test message
        - any other path answers `ok`

        The catch-all is registered here, so install the relay after any
        other routes the app serves.
        """
        app.add_api_route(WEBHOOK_PATH, self.verify, methods=["GET"])
        app.add_api_route(WEBHOOK_PATH, self.deliver, methods=["POST"])
        # Plain Starlette routes without a method list accept every verb.
        app.add_route(DEBUG_SEND_PATH, self.debug_send, include_in_schema=False)
        app.add_route("/{path:path}", self.fallback, include_in_schema=False)
        app.add_middleware(RequestLogMiddleware)

    def _is_token_valid(self, token: str | None) -> bool:
        expected = self._config.verify_token
        if not token or not expected:
            return False
        return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))

    async def verify(self, request: Request) -> Response:
        params = request.query_params
        mode = _first(params, "hub.mode")
        token = _first(params, "hub.verify_token")
        challenge = _first(params, "hub.challenge")

        if mode == "subscribe" and self._is_token_valid(token):
            logger.info("Webhook verification succeeded")
            return PlainTextResponse(challenge or "", status_code=status.HTTP_200_OK)

        logger.warning("Webhook verification rejected (mode=%s)", mode)
        return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)

    async def deliver(self, request: Request) -> Response:
        payload = await self._read_payload(request)
        phones = extract_phones(payload)
        logger.info("Webhook message from %s", ", ".join(sorted(phones)) or "N/D")

        healthy = await is_origin_healthy(self._client, self._config.origin_health_url)
        logger.info("Origin is %s", "ONLINE" if healthy else "OFFLINE")

        if healthy:
            result = await forward_payload(self._client, self._config.origin_webhook_url, payload)
            if result.reached:
                return PlainTextResponse("OK", status_code=status.HTTP_200_OK)
        elif self._config.send_autoreply:
            await self._autoreply(phones)

        return PlainTextResponse("Accepted", status_code=status.HTTP_202_ACCEPTED)

    async def debug_send(self, request: Request) -> Response:
        ok = await send_whatsapp(self._client, self._config, DEBUG_RECIPIENT, DEBUG_MESSAGE)
        if ok:
            return PlainTextResponse("✅ Enviado", status_code=status.HTTP_200_OK)
        return PlainTextResponse("❌ Falhou", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    async def fallback(self, request: Request) -> Response:
        return PlainTextResponse("ok", status_code=status.HTTP_200_OK)

    async def _autoreply(self, phones: set[str]) -> None:
        for phone in sorted(phones):
            if not await send_whatsapp(self._client, self._config, phone, OFFLINE_MESSAGE):
                logger.warning("Auto-reply to %s was not delivered", phone)

    @staticmethod
    async def _read_payload(request: Request) -> Any:
        body = await request.body()
        try:
            return json.loads(body, parse_constant=_reject_constant)
        except (ValueError, RecursionError):
            return {}


def create_app(
    config: RelayConfig | None = None,
    *,
    client: AsyncClient | None = None,
) -> FastAPI:
    """Build a FastAPI app serving only the failover relay."""

    relay_config = config if config is not None else RelayConfig.from_env()
    relay: FailoverRelay | None = None

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if relay is not None:
            await relay.aclose()

    app = FastAPI(lifespan=lifespan)
    relay = FailoverRelay(relay_config, app=app, client=client)
    app.state.relay = relay
    return app


def _build_parser() -> argparse.ArgumentParser:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Run the WhatsApp failover relay.")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind.")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind.")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level for the relay and uvicorn.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:  # pragma: no cover
    import uvicorn

    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    try:
        config = RelayConfig.from_env()
    except ValueError as exc:
        parser.error(str(exc))
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":  # pragma: no cover
    main()
