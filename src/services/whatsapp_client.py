"""WhatsApp Cloud API (Graph API) messaging client.

Only the three calls the concierge needs: send a text reply, mark an
inbound message as read, and show the typing indicator while the agent
works.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from src.config import WHATSAPP_ACCESS_TOKEN, WHATSAPP_API_VERSION, WHATSAPP_PHONE_NUMBER_ID
from src.services.http import ApiRequester

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.facebook.com"
MAX_TEXT_LENGTH = 4096


class WhatsAppClient:
    def __init__(
        self,
        phone_number_id: str | None = None,
        token: str | None = None,
        *,
        api_version: str | None = None,
        requester: ApiRequester | None = None,
    ):
        phone_number_id = phone_number_id or WHATSAPP_PHONE_NUMBER_ID
        version = api_version or WHATSAPP_API_VERSION
        self._http = requester or ApiRequester(
            f"{GRAPH_API_URL}/{version}/{phone_number_id}",
            service="whatsapp",
            token=token or WHATSAPP_ACCESS_TOKEN,
        )

    def send_text(self, to: str, body: str) -> dict[str, Any]:
        """Send a plain-text message; bodies over the API limit are truncated."""
        if len(body) > MAX_TEXT_LENGTH:
            logger.warning("Reply to %s truncated from %d chars", to, len(body))
            body = body[: MAX_TEXT_LENGTH - 1] + "…"
        return self._http.post(
            "/messages",
            json_body={
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": to,
                "type": "text",
                "text": {"body": body},
            },
        ) or {}

    def mark_as_read(self, message_id: str) -> None:
        self._http.post(
            "/messages",
            json_body={
                "messaging_product": "whatsapp",
                "status": "read",
                "message_id": message_id,
            },
        )

    def send_typing_indicator(self, message_id: str) -> None:
        """Mark *message_id* read and show "typing…" until the next reply."""
        self._http.post(
            "/messages",
            json_body={
                "messaging_product": "whatsapp",
                "status": "read",
                "message_id": message_id,
                "typing_indicator": {"type": "text"},
            },
        )


_client: WhatsAppClient | None = None
_client_lock = threading.Lock()


def get_whatsapp_client() -> WhatsAppClient:
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = WhatsAppClient()
    return _client
