"""Conversation history model shared by the orchestrator, adapters and stores.

A ``ConversationContext`` is the only state threaded through a run of the
agent loop.  It is plain pydantic so stores can persist it as JSON
(load before a run, save after).
"""

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class Role(StrEnum):
    USER = "user"
    MODEL = "model"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


class ToolCall(BaseModel):
    """A tool invocation requested by the language model."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    id: str = Field(default_factory=lambda: f"call_{uuid.uuid4().hex[:12]}")


class ToolResult(BaseModel):
    """Outcome of one ``ToolCall``; failures are carried in ``error``."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: str | None = None
    call_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Turn(BaseModel):
    """One entry of the conversation history.

    Exactly one payload field is populated, matching ``role``.
    """

    role: Role
    text: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_results: list[ToolResult] | None = None

    @property
    def content(self) -> str | list[ToolCall] | list[ToolResult]:
        if self.role is Role.TOOL_CALL:
            return self.tool_calls or []
        if self.role is Role.TOOL_RESULT:
            return self.tool_results or []
        return self.text or ""

    @classmethod
    def user(cls, text: str) -> Turn:
        return cls(role=Role.USER, text=text)

    @classmethod
    def model(cls, text: str) -> Turn:
        return cls(role=Role.MODEL, text=text)

    @classmethod
    def calls(cls, calls: list[ToolCall]) -> Turn:
        return cls(role=Role.TOOL_CALL, tool_calls=list(calls))

    @classmethod
    def results(cls, results: list[ToolResult]) -> Turn:
        return cls(role=Role.TOOL_RESULT, tool_results=list(results))


class ConversationContext(BaseModel):
    """Per-conversation state owned by exactly one orchestrator run at a time."""

    conversation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    history: list[Turn] = Field(default_factory=list)

    def reset(self) -> None:
        self.history = []


class FunctionCallingResult(BaseModel):
    """What one orchestrator run hands back to its caller."""

    final_response: str
    conversation_history: list[Turn] = Field(default_factory=list)
    functions_executed: list[ToolResult] = Field(default_factory=list)
    is_parallel_execution: bool = False
