"""Tests for the LangChain / Anthropic language-model adapter."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from src.conversation import ToolCall, ToolResult, Turn
from src.services.llm import (
    AnthropicLanguageModel,
    ModelRequest,
    extract_text,
    to_anthropic_tools,
    to_langchain_messages,
)

SCHEMA = {
    "name": "set_thermostat",
    "description": "Set the room temperature.",
    "parameters": {"type": "object", "properties": {"temperature": {"type": "number"}}},
}


class TestToLangchainMessages:
    def test_full_history(self):
        call = ToolCall(name="set_thermostat", args={"temperature": 21}, id="call_1")
        request = ModelRequest(
            input="and the lights?",
            system_instruction="You are Serena.",
            conversation_history=[
                Turn.user("warmer please"),
                Turn.calls([call]),
                Turn.results([
                    ToolResult(name="set_thermostat", result={"status": "adjusted"}, call_id="call_1"),
                ]),
                Turn.model("Done."),
            ],
        )
        messages = to_langchain_messages(request)

        assert [type(m) for m in messages] == [
            SystemMessage, HumanMessage, AIMessage, ToolMessage, AIMessage, HumanMessage,
        ]
        assert messages[2].tool_calls[0]["id"] == "call_1"
        assert messages[3].tool_call_id == "call_1"
        assert json.loads(messages[3].content) == {"status": "adjusted"}
        assert messages[-1].content == "and the lights?"

    def test_failed_result_is_marked_error(self):
        request = ModelRequest(conversation_history=[
            Turn.results([ToolResult(name="x", error="ValueError: bad", call_id="c")]),
        ])
        (message,) = to_langchain_messages(request)
        assert message.status == "error"
        assert json.loads(message.content) == {"error": "ValueError: bad"}


class TestHelpers:
    def test_extract_text_from_blocks(self):
        blocks = [{"type": "text", "text": "Hello "}, {"type": "tool_use"}, "there"]
        assert extract_text(blocks) == "Hello there"

    def test_to_anthropic_tools(self):
        (tool,) = to_anthropic_tools([SCHEMA])
        assert tool["input_schema"] == SCHEMA["parameters"]


class TestAnthropicLanguageModel:
    def test_returns_tool_calls_with_provider_ids(self):
        llm = MagicMock()
        llm.bind_tools.return_value.invoke.return_value = AIMessage(
            content="",
            tool_calls=[{"name": "set_thermostat", "args": {"temperature": 22}, "id": "toolu_1"}],
        )
        response = AnthropicLanguageModel(llm).generate(
            ModelRequest(input="warmer", tools=[SCHEMA]),
        )
        assert response.text is None
        assert response.function_calls[0].id == "toolu_1"
        assert response.function_calls[0].args == {"temperature": 22}

    def test_returns_text_without_binding_tools(self):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="Hi!")
        response = AnthropicLanguageModel(llm).generate(ModelRequest(input="hello"))
        assert response.text == "Hi!"
        llm.bind_tools.assert_not_called()

    def test_blank_text_means_no_answer(self):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="  ")
        response = AnthropicLanguageModel(llm).generate(ModelRequest(input="hello"))
        assert response.text is None and response.function_calls is None
