"""Tests for the orchestration loop, driven by scripted model stubs."""

from __future__ import annotations

import pytest

from src.agent import (
    DEFAULT_COMPLETION_MESSAGE,
    EXCEEDED_TURNS_MESSAGE,
    NO_RESPONSE_MESSAGE,
    Orchestrator,
)
from src.conversation import Role, ToolCall
from src.services.llm import ModelResponse
from src.tools.registry import ToolRegistry, ToolSpec

# ── Helpers ──────────────────────────────────────────────────────────

_SCHEMA = {"type": "object", "properties": {"n": {"type": "integer"}}, "required": []}


class ScriptedModel:
    """Returns the queued responses in order; the last one repeats."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        item = self._responses[0] if len(self._responses) == 1 else self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _registry() -> ToolRegistry:
    return ToolRegistry.of([
        ToolSpec("double", "Double n", _SCHEMA, lambda n=1: n * 2),
        ToolSpec("square", "Square n", _SCHEMA, lambda n=1: n * n),
    ])


def _calls(*names) -> ModelResponse:
    return ModelResponse(function_calls=[ToolCall(name=n, args={"n": 3}) for n in names])


def _text(text: str) -> ModelResponse:
    return ModelResponse(text=text)


# ── Tests ────────────────────────────────────────────────────────────


class TestTerminalText:
    def test_direct_text_answer(self):
        agent = Orchestrator(ScriptedModel(_text("Hello!")), _registry())
        context = Orchestrator.create_context()

        result = agent.function_calling("Hi", "system", context)

        assert result.final_response == "Hello!"
        assert result.functions_executed == []
        assert not result.is_parallel_execution
        assert [t.role for t in context.history] == [Role.USER, Role.MODEL]

    def test_parallel_calls_then_text(self):
        model = ScriptedModel(_calls("double", "square"), _text("Done: 6 and 9"))
        agent = Orchestrator(model, _registry())
        context = Orchestrator.create_context()

        result = agent.function_calling("Crunch 3", "system", context)

        assert result.final_response == "Done: 6 and 9"
        assert result.is_parallel_execution is True
        assert len(result.functions_executed) == 2
        assert [r.result for r in result.functions_executed] == [6, 9]
        assert [t.role for t in result.conversation_history] == [
            Role.USER, Role.TOOL_CALL, Role.TOOL_RESULT, Role.MODEL,
        ]
        assert result.conversation_history == context.history

    def test_model_sees_tool_schemas_and_system_instruction(self):
        model = ScriptedModel(_text("ok"))
        Orchestrator(model, _registry()).function_calling(
            "Hi", "be nice", Orchestrator.create_context(),
        )
        request = model.requests[0]
        assert request.system_instruction == "be nice"
        assert [t["name"] for t in request.tools] == ["double", "square"]
        assert request.conversation_history[-1].text == "Hi"

    def test_sequential_single_calls_are_not_parallel(self):
        model = ScriptedModel(_calls("double"), _calls("square"), _text("fin"))
        result = Orchestrator(model, _registry()).function_calling(
            "go", "sys", Orchestrator.create_context(),
        )
        assert len(result.functions_executed) == 2
        assert result.is_parallel_execution is False

    def test_history_carries_over_between_messages(self):
        model = ScriptedModel(_text("first"), _text("second"))
        agent = Orchestrator(model, _registry())
        context = Orchestrator.create_context()

        agent.function_calling("one", "sys", context)
        agent.function_calling("two", "sys", context)

        assert [t.text for t in context.history] == ["one", "first", "two", "second"]
        assert len(model.requests[1].conversation_history) == 3


class TestFallbacks:
    def test_empty_response(self):
        agent = Orchestrator(ScriptedModel(ModelResponse()), _registry())
        result = agent.function_calling("Hi", "sys", Orchestrator.create_context())
        assert result.final_response == NO_RESPONSE_MESSAGE

    def test_stops_after_max_turns(self):
        model = ScriptedModel(_calls("double"))
        agent = Orchestrator(model, _registry(), max_turns=5)
        context = Orchestrator.create_context()

        result = agent.function_calling("loop", "sys", context)

        assert result.final_response == EXCEEDED_TURNS_MESSAGE
        assert len(model.requests) == 5
        assert len(result.functions_executed) == 5
        assert len(context.history) == 1 + 2 * 5

    def test_summarizes_when_enabled(self):
        model = ScriptedModel(_calls("double"), _calls("double"), _text("All done."))
        agent = Orchestrator(model, _registry(), max_turns=2, summarize_on_exhaustion=True)

        result = agent.function_calling("loop", "sys", Orchestrator.create_context())

        assert result.final_response == "All done."
        assert model.requests[-1].input.startswith("Summarize what was accomplished: double: 6")
        assert result.conversation_history[-1].role is Role.MODEL

    def test_summary_without_text_uses_static_message(self):
        model = ScriptedModel(_calls("double"), ModelResponse())
        agent = Orchestrator(model, _registry(), max_turns=1, summarize_on_exhaustion=True)
        result = agent.function_calling("loop", "sys", Orchestrator.create_context())
        assert result.final_response == DEFAULT_COMPLETION_MESSAGE

    def test_tool_failure_is_reported_to_model_not_raised(self):
        registry = ToolRegistry.of([
            ToolSpec("explode", "fails", _SCHEMA, lambda **_: 1 / 0),
        ])
        model = ScriptedModel(_calls("explode"), _text("Sorry, that failed."))
        result = Orchestrator(model, registry).function_calling(
            "go", "sys", Orchestrator.create_context(),
        )
        assert result.final_response == "Sorry, that failed."
        assert result.functions_executed[0].error.startswith("ZeroDivisionError")


class TestErrors:
    def test_model_error_returns_prefixed_message_and_keeps_history(self):
        model = ScriptedModel(_calls("double"), RuntimeError("model down"))
        agent = Orchestrator(model, _registry())
        context = Orchestrator.create_context()

        result = agent.function_calling("go", "sys", context)

        assert result.final_response == "Error: model down"
        assert [t.role for t in context.history] == [
            Role.USER, Role.TOOL_CALL, Role.TOOL_RESULT,
        ]
        assert len(result.functions_executed) == 1

    def test_error_on_first_call_keeps_user_turn(self):
        context = Orchestrator.create_context()
        result = Orchestrator(ScriptedModel(RuntimeError("boom")), _registry()).function_calling(
            "hello", "sys", context,
        )
        assert result.final_response == "Error: boom"
        assert [t.text for t in context.history] == ["hello"]

    def test_invalid_max_turns(self):
        with pytest.raises(ValueError):
            Orchestrator(ScriptedModel(_text("x")), _registry(), max_turns=0)


class TestConversationHelpers:
    def test_reset_and_history_copy(self):
        agent = Orchestrator(ScriptedModel(_text("hi")), _registry())
        context = Orchestrator.create_context("conv-1")
        agent.function_calling("hello", "sys", context)

        history = Orchestrator.get_conversation_history(context)
        history.clear()
        assert len(context.history) == 2

        Orchestrator.reset_conversation(context)
        assert context.history == []
        assert context.conversation_id == "conv-1"
