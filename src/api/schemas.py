"""Pydantic schemas for the FastAPI endpoints and the WhatsApp webhook."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from src.services.processor import InboundMessage


class ChatRequest(BaseModel):
    """Incoming chat message from a web or test client."""

    message: str = Field(..., min_length=1, max_length=2000, description="The user's message")
    session_id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique session identifier for conversation continuity",
    )


class ChatResponse(BaseModel):
    reply: str = Field(..., description="The agent's response message")
    session_id: str = Field(..., description="The session ID for this conversation")
    tools_used: list[str] = Field(default_factory=list, description="Tools executed this turn")


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "clinic-concierge-agent"


# ── WhatsApp webhook payload ─────────────────────────────────────────
# Only the fields the concierge reads are modelled; the rest is ignored.


class WhatsAppText(BaseModel):
    body: str


class WhatsAppMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_: str = Field(..., alias="from")
    timestamp: str | None = None
    type: str
    text: WhatsAppText | None = None


class WhatsAppProfile(BaseModel):
    name: str | None = None


class WhatsAppContact(BaseModel):
    wa_id: str
    profile: WhatsAppProfile | None = None


class WhatsAppValue(BaseModel):
    messaging_product: str | None = None
    contacts: list[WhatsAppContact] = Field(default_factory=list)
    messages: list[WhatsAppMessage] = Field(default_factory=list)


class WhatsAppChange(BaseModel):
    field: str
    value: WhatsAppValue


class WhatsAppEntry(BaseModel):
    id: str | None = None
    changes: list[WhatsAppChange] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    object: str | None = None
    entry: list[WhatsAppEntry] = Field(default_factory=list)

    def text_messages(self) -> list[InboundMessage]:
        """Flatten the payload into the text messages it carries."""
        inbound = []
        for entry in self.entry:
            for change in entry.changes:
                if change.field != "messages":
                    continue
                names = {
                    c.wa_id: c.profile.name if c.profile else None
                    for c in change.value.contacts
                }
                for message in change.value.messages:
                    if message.type != "text" or message.text is None:
                        continue
                    inbound.append(InboundMessage(
                        message_id=message.id,
                        sender=message.from_,
                        text=message.text.body,
                        contact_name=names.get(message.from_),
                    ))
        return inbound


class WebhookAck(BaseModel):
    status: str = "accepted"
    queued: int = 0
