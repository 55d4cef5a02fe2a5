"""Centralized configuration for the clinic concierge agent.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/clinic-concierge/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))
_SSM_PREFIX = "/clinic-concierge"


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store, or ``None``."""
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{_SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _lookup(name: str) -> str | None:
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value
    if _ON_AWS:
        return _get_ssm_parameter(name)
    return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = _lookup(name)
    if value:
        return value
    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {_SSM_PREFIX}/{name} (AWS)."
    )


def _optional_secret(name: str, default: str = "") -> str:
    return _lookup(name) or default


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-sonnet-4-5")
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

# ── Agent loop ──────────────────────────────────────────────────────
MAX_TURNS: int = int(os.getenv("MAX_TURNS", "5"))
TOOL_TIMEOUT_SECONDS: float = float(os.getenv("TOOL_TIMEOUT_SECONDS", "45"))
SUMMARIZE_ON_EXHAUSTION: bool = os.getenv("SUMMARIZE_ON_EXHAUSTION", "false").lower() == "true"

# ── Business ────────────────────────────────────────────────────────
BUSINESS_NAME: str = os.getenv("BUSINESS_NAME", "Serenity Health Clinic")
SERVICES_FILE: str = os.getenv("SERVICES_FILE", "calendar_services.json")

# ── Calendar proxy ──────────────────────────────────────────────────
CALENDAR_API_URL: str = os.getenv("CALENDAR_API_URL", "http://localhost:8787")
CALENDAR_API_TOKEN: str = _optional_secret("CALENDAR_API_TOKEN")

# ── Knowledge search ────────────────────────────────────────────────
EMBEDDINGS_API_URL: str = os.getenv(
    "EMBEDDINGS_API_URL", "https://generativelanguage.googleapis.com/v1beta",
)
EMBEDDINGS_API_KEY: str = _optional_secret("EMBEDDINGS_API_KEY")
EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-004")
VECTOR_INDEX_URL: str = os.getenv("VECTOR_INDEX_URL", "")
VECTOR_API_TOKEN: str = _optional_secret("VECTOR_API_TOKEN")

# ── WhatsApp ────────────────────────────────────────────────────────
WHATSAPP_API_VERSION: str = os.getenv("WHATSAPP_API_VERSION", "v21.0")
WHATSAPP_PHONE_NUMBER_ID: str = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")
WHATSAPP_ACCESS_TOKEN: str = _optional_secret("WHATSAPP_ACCESS_TOKEN")

# ── Conversation storage ────────────────────────────────────────────
CONVERSATION_TTL_SECONDS: float = float(os.getenv("CONVERSATION_TTL_SECONDS", "86400"))

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
