"""Language-model capability used by the orchestrator.

The orchestrator only depends on the ``LanguageModel`` protocol.  The
production implementation drives Claude through ``langchain_anthropic``,
translating our ``Turn`` history to LangChain messages on every call.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from pydantic import BaseModel, Field

from src.config import ANTHROPIC_API_KEY, LLM_TIMEOUT_SECONDS, MODEL_NAME
from src.conversation import Role, ToolCall, Turn

logger = logging.getLogger(__name__)


class ModelRequest(BaseModel):
    input: str = ""
    system_instruction: str = ""
    tools: list[dict[str, Any]] = Field(default_factory=list)
    conversation_history: list[Turn] = Field(default_factory=list)


class ModelResponse(BaseModel):
    """Either ``text`` or ``function_calls`` is set; neither means no answer."""

    text: str | None = None
    function_calls: list[ToolCall] | None = None


class LanguageModel(Protocol):
    def generate(self, request: ModelRequest) -> ModelResponse: ...


# ── History → LangChain messages ─────────────────────────────────────


def _tool_payload(result: Any, error: str | None) -> str:
    payload = {"error": error} if error is not None else result
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, default=str)


def to_langchain_messages(request: ModelRequest) -> list[BaseMessage]:
    """Translate a request into the message list sent to the chat model."""
    messages: list[BaseMessage] = []
    if request.system_instruction:
        messages.append(SystemMessage(content=request.system_instruction))

    for turn in request.conversation_history:
        if turn.role is Role.USER:
            messages.append(HumanMessage(content=turn.text or ""))
        elif turn.role is Role.MODEL:
            messages.append(AIMessage(content=turn.text or ""))
        elif turn.role is Role.TOOL_CALL:
            messages.append(AIMessage(
                content="",
                tool_calls=[
                    {"name": c.name, "args": c.args, "id": c.id}
                    for c in turn.tool_calls or []
                ],
            ))
        elif turn.role is Role.TOOL_RESULT:
            for r in turn.tool_results or []:
                messages.append(ToolMessage(
                    content=_tool_payload(r.result, r.error),
                    tool_call_id=r.call_id or "",
                    name=r.name,
                    status="error" if r.error is not None else "success",
                ))

    if request.input:
        messages.append(HumanMessage(content=request.input))
    return messages


def extract_text(content: Any) -> str:
    """Flatten Anthropic content (plain string or list of blocks) to text."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def to_anthropic_tools(schemas: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "name": s["name"],
            "description": s["description"],
            "input_schema": s["parameters"],
        }
        for s in schemas
    ]


# ── Anthropic implementation ─────────────────────────────────────────


class AnthropicLanguageModel:
    """``LanguageModel`` backed by ``ChatAnthropic``."""

    def __init__(self, llm: ChatAnthropic | None = None):
        self._llm = llm or ChatAnthropic(
            model=MODEL_NAME,
            api_key=ANTHROPIC_API_KEY,
            temperature=0.1,
            max_tokens=1024,
            timeout=LLM_TIMEOUT_SECONDS,
            max_retries=2,
        )

    def generate(self, request: ModelRequest) -> ModelResponse:
        runnable = self._llm
        if request.tools:
            runnable = self._llm.bind_tools(to_anthropic_tools(request.tools))

        response = runnable.invoke(to_langchain_messages(request))

        calls = []
        for raw in getattr(response, "tool_calls", None) or []:
            call = ToolCall(name=raw["name"], args=raw.get("args") or {})
            if raw.get("id"):
                call.id = raw["id"]
            calls.append(call)
        if calls:
            logger.debug("Model requested %d tool call(s): %s", len(calls), [c.name for c in calls])
            return ModelResponse(function_calls=calls)

        text = extract_text(response.content).strip()
        return ModelResponse(text=text or None)
