"""FastAPI server for the clinic concierge agent.

Run with:
    uvicorn src.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from src.agent import create_concierge_agent
from src.api.routes import router, webhook_router
from src.config import BUSINESS_NAME, CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from src.services.conversations import ConversationStore
from src.services.processor import MessageProcessor
from src.services.whatsapp_client import get_whatsapp_client

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the orchestrator, conversation store and message processor once."""
    logger.info("Building concierge agent…")
    agent = create_concierge_agent()
    conversations = ConversationStore()
    application.state.agent = agent
    application.state.conversations = conversations
    application.state.processor = MessageProcessor(
        agent, get_whatsapp_client(), conversations,
    )
    logger.info("Agent ready.")
    yield


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Clinic Concierge Agent",
    description=(
        f"WhatsApp assistant for {BUSINESS_NAME}: availability, booking, "
        "rescheduling, cancellations and clinic questions."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (echoed as ``X-Request-ID``) for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Routes ───────────────────────────────────────────────────────────
app.include_router(router, prefix="/api")
app.include_router(webhook_router)


@app.get("/")
async def root():
    return {
        "service": "Clinic Concierge Agent",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
        "webhook": "/webhook",
    }


# ── CLI entry point ──────────────────────────────────────────────────
if __name__ == "__main__":
    logger.info("Starting concierge API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "src.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
