"""Minimal FastAPI integration example."""

from fastapi import FastAPI

from whatsapp_failover import FailoverRelay, RelayConfig

app = FastAPI()


@app.get("/relay/status")
async def relay_status() -> dict[str, str]:
    return {"status": "up"}


# Installed last: the relay registers a catch-all route.
relay = FailoverRelay(
    RelayConfig(
        verify_token="secret",
        origin_webhook_url="http://localhost:8080/webhook",
        origin_health_url="http://localhost:8080/health",
        whatsapp_token="graph-token",
        phone_number_id="1234567890",
        send_autoreply=True,
    ),
    app=app,
)
