"""Payload shapes and helpers for the WhatsApp Cloud API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, TypedDict

OFFLINE_MESSAGE = (
    "⚠️ Estamos com instabilidade. Recebemos sua mensagem e avisaremos "
    "assim que tudo voltar ao normal."
)


class TextBody(TypedDict):
    body: str


class TextMessage(TypedDict):
    messaging_product: str
    to: str
    type: str
    text: TextBody


@dataclass(frozen=True)
class OutboundResult:
    """Outcome of one outbound HTTP call.

    ``status_code`` is set when the remote end answered, ``error`` when the
    call failed before a response arrived.
    """

    status_code: int | None = None
    error: str | None = None

    @property
    def reached(self) -> bool:
        return self.status_code is not None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


def build_text_message(to: str, text: str) -> TextMessage:
    return {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "text",
        "text": {"body": text},
    }


def _get(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value.get(key)
    return None


def _items(value: Any) -> Iterable[Any]:
    if isinstance(value, list):
        return value
    return ()


def extract_phones(payload: Any) -> set[str]:
    """Collect the distinct sender numbers referenced by a webhook payload.

    Walks ``entry[].changes[].value.messages[].from``. Anything that does not
    have the expected shape is skipped, so a malformed payload yields a
    partial or empty set instead of an error.
    """

    phones: set[str] = set()
    for entry in _items(_get(payload, "entry")):
        for change in _items(_get(entry, "changes")):
            for message in _items(_get(_get(change, "value"), "messages")):
                sender = _get(message, "from")
                if isinstance(sender, str) and sender:
                    phones.add(sender)
    return phones
