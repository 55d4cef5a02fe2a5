"""Background processing of inbound WhatsApp messages.

The webhook route only parses the payload and schedules
``MessageProcessor.process`` for each message.  Processing is idempotent
per WhatsApp message id: a redelivered message that is in flight or done
is skipped.  A message that failed before the agent ran can be retried;
one that failed only while sending the reply is not re-run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel

from src.agent import Orchestrator
from src.prompts import get_system_prompt
from src.services.cache import LRUCache
from src.services.conversations import ConversationStore
from src.services.http import ApiError
from src.services.whatsapp_client import WhatsAppClient

logger = logging.getLogger(__name__)

PROCESSED_TTL_SECONDS = 24 * 60 * 60
FALLBACK_REPLY = (
    "Sorry, I'm having trouble right now. Please try again in a few minutes."
)


class InboundMessage(BaseModel):
    message_id: str
    sender: str
    text: str
    contact_name: str | None = None


class ProcessingStatus(StrEnum):
    COMPLETED = "completed"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class ProcessingResult(BaseModel):
    message_id: str
    status: ProcessingStatus
    reply: str | None = None


class MessageProcessor:
    def __init__(
        self,
        agent: Orchestrator,
        whatsapp: WhatsAppClient,
        conversations: ConversationStore | None = None,
        processed: LRUCache | None = None,
        *,
        system_prompt: Callable[..., str] = get_system_prompt,
    ):
        self._agent = agent
        self._whatsapp = whatsapp
        self._conversations = conversations or ConversationStore()
        self._processed = processed or LRUCache(ttl_seconds=PROCESSED_TTL_SECONDS)
        self._system_prompt = system_prompt

    def _service_names(self) -> list[str]:
        context = self._agent.tool_context
        return context.directory.names if context is not None else []

    def process(self, message: InboundMessage) -> ProcessingResult:
        key = f"message:{message.message_id}"
        if not self._processed.put_if_absent(key, "processing"):
            logger.info("Skipping duplicate message %s", message.message_id)
            return ProcessingResult(message_id=message.message_id, status=ProcessingStatus.DUPLICATE)

        agent_ran = False
        try:
            self._acknowledge(message.message_id)
            with self._conversations.session(message.sender) as context:
                result = self._agent.function_calling(
                    message.text,
                    self._system_prompt(
                        service_names=self._service_names(),
                        user_history=(
                            f"The patient's WhatsApp name is {message.contact_name}."
                            if message.contact_name else None
                        ),
                    ),
                    context,
                )
            agent_ran = True
            reply = result.final_response
            if reply.startswith("Error:"):
                logger.error("Agent error for message %s: %s", message.message_id, reply)
                reply = FALLBACK_REPLY
            self._whatsapp.send_text(message.sender, reply)
        except ApiError:
            # Once the agent has run its side effects (bookings) must not repeat.
            if agent_ran:
                self._processed.put(key, ProcessingStatus.FAILED.value)
            else:
                self._processed.invalidate(key)
            logger.exception("Failed to process message %s", message.message_id)
            return ProcessingResult(message_id=message.message_id, status=ProcessingStatus.FAILED)
        except Exception:
            if not agent_ran:
                self._processed.invalidate(key)
            raise

        self._processed.put(key, ProcessingStatus.COMPLETED.value)
        logger.info("Processed message %s from %s", message.message_id, message.sender)
        return ProcessingResult(
            message_id=message.message_id, status=ProcessingStatus.COMPLETED, reply=reply,
        )

    def _acknowledge(self, message_id: str) -> None:
        """Read receipt plus typing indicator; failures here are not fatal."""
        try:
            self._whatsapp.mark_as_read(message_id)
            self._whatsapp.send_typing_indicator(message_id)
        except ApiError as exc:
            logger.warning("Could not acknowledge message %s: %s", message_id, exc)
