"""LangGraph orchestration loop for the clinic concierge.

Architecture:
  A ``StateGraph`` with three nodes drives the language model and the tool
  executor through a bounded number of rounds:

    1. **model**: sends the history (plus tool schemas) to the model
    2. **tools**: runs every call the model requested, in parallel
    3. **wrap_up**: produces the fallback answer when the loop ends
                      without text from the model

  Routing:
    model → (tool calls?)       → tools → (turns left?) → model
                                        → (turns exhausted) → wrap_up → END
    model → (text or error?)    → END
    model → (empty response?)   → wrap_up → END

  State:
    The graph holds no memory between runs.  Callers pass a
    ``ConversationContext`` in and get the grown history back in it; the
    history is written back even when the loop fails part-way.
"""

from __future__ import annotations

import json
import logging
import operator
import time
from typing import Annotated

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from src.config import (
    MAX_TURNS,
    SERVICES_FILE,
    SUMMARIZE_ON_EXHAUSTION,
    TOOL_TIMEOUT_SECONDS,
)
from src.conversation import (
    ConversationContext,
    FunctionCallingResult,
    ToolCall,
    ToolResult,
    Turn,
)
from src.services.calendar_client import get_calendar_client
from src.services.directory import ServiceDirectory
from src.services.llm import AnthropicLanguageModel, LanguageModel, ModelRequest
from src.services.metrics import metrics
from src.services.search_client import get_search_client
from src.tools import appointments, availability, devices, knowledge
from src.tools.executor import execute_many
from src.tools.registry import ToolContext, ToolRegistry

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = "No response generated"
EXCEEDED_TURNS_MESSAGE = "Exceeded maximum function calling turns."
DEFAULT_COMPLETION_MESSAGE = "I have completed the requested actions."

OUTCOME_TOOL_CALLS = "tool_calls"
OUTCOME_TEXT = "text"
OUTCOME_EMPTY = "empty"
OUTCOME_ERROR = "error"


# ── State schema ─────────────────────────────────────────────────────


class AgentState(TypedDict, total=False):
    """State flowing through the graph.

    ``history`` and ``executed`` use ``operator.add`` so nodes only return
    the turns/results they append.
    """

    history: Annotated[list[Turn], operator.add]
    executed: Annotated[list[ToolResult], operator.add]
    pending_calls: list[ToolCall]
    turns: int
    parallel: bool
    outcome: str
    final_response: str


# ── Tool wiring ──────────────────────────────────────────────────────


def build_default_registry() -> ToolRegistry:
    """Every tool the concierge can call, in the order advertised to the model."""
    return ToolRegistry.of([
        *devices.TOOLS,
        *knowledge.TOOLS,
        *availability.TOOLS,
        *appointments.TOOLS,
    ])


def build_tool_context(directory: ServiceDirectory | None = None) -> ToolContext:
    """Wire the production collaborators into a ``ToolContext``."""
    return ToolContext(
        directory=directory or ServiceDirectory.from_file(SERVICES_FILE),
        calendar=get_calendar_client(),
        search=get_search_client(),
    )


# ── Orchestrator ─────────────────────────────────────────────────────


class Orchestrator:
    """Runs one user message through the model ↔ tools loop."""

    def __init__(
        self,
        model: LanguageModel,
        registry: ToolRegistry,
        tool_context: ToolContext | None = None,
        *,
        max_turns: int = MAX_TURNS,
        summarize_on_exhaustion: bool = False,
        tool_timeout: float | None = TOOL_TIMEOUT_SECONDS,
    ):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self._model = model
        self._registry = registry
        self._tool_context = tool_context
        self._max_turns = max_turns
        self._summarize = summarize_on_exhaustion
        self._tool_timeout = tool_timeout
        self._graph = self._build_graph()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def tool_context(self) -> ToolContext | None:
        return self._tool_context

    # ── Conversation helpers ─────────────────────────────────────────

    @staticmethod
    def create_context(conversation_id: str | None = None) -> ConversationContext:
        if conversation_id:
            return ConversationContext(conversation_id=conversation_id)
        return ConversationContext()

    @staticmethod
    def reset_conversation(context: ConversationContext) -> None:
        context.reset()

    @staticmethod
    def get_conversation_history(context: ConversationContext) -> list[Turn]:
        return list(context.history)

    # ── Model calls ──────────────────────────────────────────────────

    def _call_model(self, history: list[Turn], system_instruction: str, user_input: str = ""):
        t0 = time.perf_counter()
        try:
            response = self._model.generate(ModelRequest(
                input=user_input,
                system_instruction=system_instruction,
                tools=self._registry.schemas(),
                conversation_history=history,
            ))
        except Exception as exc:
            metrics.record_failure(
                "llm", "generate",
                error_type=type(exc).__name__,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise
        metrics.record_success("llm", "generate", latency_ms=(time.perf_counter() - t0) * 1000)
        return response

    def _summarize_results(self, state: AgentState, system_instruction: str) -> dict:
        summary_input = "Summarize what was accomplished: " + ", ".join(
            f"{r.name}: {json.dumps(r.result if r.ok else {'error': r.error}, default=str)}"
            for r in state.get("executed", [])
        )
        response = self._call_model(state["history"], system_instruction, summary_input)
        if response.text:
            return {"final_response": response.text, "history": [Turn.model(response.text)]}
        return {"final_response": DEFAULT_COMPLETION_MESSAGE}

    # ── Graph ────────────────────────────────────────────────────────

    def _build_graph(self):
        graph = StateGraph(AgentState)
        graph.add_node("model", self._model_node)
        graph.add_node("tools", self._tools_node)
        graph.add_node("wrap_up", self._wrap_up_node)

        graph.set_entry_point("model")
        graph.add_conditional_edges(
            "model",
            self._route_after_model,
            {"tools": "tools", "wrap_up": "wrap_up", END: END},
        )
        graph.add_conditional_edges(
            "tools",
            self._route_after_tools,
            {"model": "model", "wrap_up": "wrap_up"},
        )
        graph.add_edge("wrap_up", END)
        return graph.compile()

    def _model_node(self, state: AgentState, config: RunnableConfig) -> dict:
        system_instruction = config["configurable"]["system_instruction"]
        try:
            response = self._call_model(state["history"], system_instruction)
        except Exception as exc:
            logger.exception("Model call failed on turn %d", state.get("turns", 0) + 1)
            return {"outcome": OUTCOME_ERROR, "final_response": f"Error: {exc}"}

        if response.function_calls:
            return {"outcome": OUTCOME_TOOL_CALLS, "pending_calls": response.function_calls}
        if response.text:
            return {
                "outcome": OUTCOME_TEXT,
                "final_response": response.text,
                "history": [Turn.model(response.text)],
            }
        return {"outcome": OUTCOME_EMPTY}

    def _tools_node(self, state: AgentState) -> dict:
        calls = state["pending_calls"]
        turn = state.get("turns", 0) + 1
        logger.info("Turn %d: executing %s", turn, ", ".join(c.name for c in calls))
        results = execute_many(
            self._registry, calls, self._tool_context, timeout=self._tool_timeout,
        )
        return {
            "history": [Turn.calls(calls), Turn.results(results)],
            "executed": results,
            "pending_calls": [],
            "turns": turn,
            "parallel": state.get("parallel", False) or len(calls) > 1,
        }

    def _wrap_up_node(self, state: AgentState, config: RunnableConfig) -> dict:
        exhausted = state.get("outcome") == OUTCOME_TOOL_CALLS
        if exhausted:
            logger.warning("Stopped after %d tool turns without a final answer", self._max_turns)
        if self._summarize and state.get("executed"):
            try:
                return self._summarize_results(
                    state, config["configurable"]["system_instruction"],
                )
            except Exception as exc:
                logger.exception("Summary call failed")
                return {"outcome": OUTCOME_ERROR, "final_response": f"Error: {exc}"}
        return {"final_response": EXCEEDED_TURNS_MESSAGE if exhausted else NO_RESPONSE_MESSAGE}

    @staticmethod
    def _route_after_model(state: AgentState) -> str:
        outcome = state.get("outcome")
        if outcome == OUTCOME_TOOL_CALLS:
            return "tools"
        if outcome == OUTCOME_EMPTY:
            return "wrap_up"
        return END

    def _route_after_tools(self, state: AgentState) -> str:
        if state.get("turns", 0) >= self._max_turns:
            return "wrap_up"
        return "model"

    # ── Public API ───────────────────────────────────────────────────

    def function_calling(
        self,
        user_input: str,
        system_instruction: str,
        context: ConversationContext,
    ) -> FunctionCallingResult:
        """Answer *user_input*, calling tools as the model requests.

        The user turn and every turn produced by the loop are appended to
        ``context.history``, whatever way the loop ends.
        """
        initial: AgentState = {
            "history": [*context.history, Turn.user(user_input)],
            "executed": [],
            "pending_calls": [],
            "turns": 0,
            "parallel": False,
        }
        last: AgentState = initial
        final_response = None
        try:
            for snapshot in self._graph.stream(
                initial,
                config={
                    "configurable": {"system_instruction": system_instruction},
                    "recursion_limit": 2 * self._max_turns + 4,
                },
                stream_mode="values",
            ):
                last = snapshot
        except Exception as exc:
            logger.exception("Agent loop failed for conversation %s", context.conversation_id)
            final_response = f"Error: {exc}"

        context.history = list(last.get("history", initial["history"]))
        executed = list(last.get("executed", []))
        result = FunctionCallingResult(
            final_response=final_response or last.get("final_response") or NO_RESPONSE_MESSAGE,
            conversation_history=list(context.history),
            functions_executed=executed,
            is_parallel_execution=bool(last.get("parallel", False)),
        )
        logger.info(
            "Conversation %s: %d turn(s), %d tool call(s)%s",
            context.conversation_id,
            last.get("turns", 0),
            len(executed),
            " (parallel)" if result.is_parallel_execution else "",
        )
        return result


# ── Factory ──────────────────────────────────────────────────────────


def create_concierge_agent(
    model: LanguageModel | None = None,
    tool_context: ToolContext | None = None,
) -> Orchestrator:
    """Build the production orchestrator (Claude + all clinic tools)."""
    registry = build_default_registry()
    orchestrator = Orchestrator(
        model or AnthropicLanguageModel(),
        registry,
        tool_context or build_tool_context(),
        summarize_on_exhaustion=SUMMARIZE_ON_EXHAUSTION,
    )
    logger.debug("Concierge agent ready with %d tools", len(registry))
    return orchestrator
