"""FastAPI route definitions for the concierge agent API."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from src.api.schemas import ChatRequest, ChatResponse, HealthResponse, WebhookAck, WebhookPayload
from src.prompts import get_system_prompt

logger = logging.getLogger(__name__)

router = APIRouter()
webhook_router = APIRouter()


def _get_state(request: Request, name: str):
    """Fetch a resource the lifespan stored on app state, or 503."""
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=503,
            detail="The agent is still starting up. Please try again in a moment.",
        )
    return value


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the concierge and get its reply.

    ``function_calling`` blocks on the model and calendar APIs, so it runs
    in a worker thread via ``asyncio.to_thread``.
    """
    agent = _get_state(http_request, "agent")
    conversations = _get_state(http_request, "conversations")
    request_id = getattr(http_request.state, "request_id", "?")

    service_names = agent.tool_context.directory.names if agent.tool_context else []

    def _run():
        with conversations.session(request.session_id) as context:
            return agent.function_calling(
                request.message, get_system_prompt(service_names=service_names), context,
            )

    try:
        result = await asyncio.to_thread(_run)
    except Exception as e:
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e

    if result.final_response.startswith("Error:"):
        logger.error("[%s] Agent failed: %s", request_id, result.final_response)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        )

    return ChatResponse(
        reply=result.final_response,
        session_id=request.session_id,
        tools_used=[r.name for r in result.functions_executed],
    )


@webhook_router.post("/webhook", response_model=WebhookAck)
async def whatsapp_webhook(
    payload: WebhookPayload,
    background_tasks: BackgroundTasks,
    http_request: Request,
):
    """Acknowledge a WhatsApp delivery and process its messages in the background."""
    processor = _get_state(http_request, "processor")
    request_id = getattr(http_request.state, "request_id", "?")

    messages = payload.text_messages()
    for message in messages:
        background_tasks.add_task(processor.process, message)
    if messages:
        logger.info("[%s] Queued %d WhatsApp message(s)", request_id, len(messages))
    else:
        logger.debug("[%s] Webhook carried no text messages", request_id)
    return WebhookAck(queued=len(messages))
