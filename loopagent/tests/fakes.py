"""
Fake chat models for driving the agent loop without a backend.

``ScriptedChatModel`` replays a fixed list of AIMessages, one per model call,
streaming text and tool calls as ``AIMessageChunk``s the way a provider does.
Every call's input messages are kept in ``calls``.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import Field


class ScriptedChatModel(BaseChatModel):
    responses: list[AIMessage] = Field(default_factory=list)
    calls: list[list[BaseMessage]] = Field(default_factory=list)
    bound_tools: list[Any] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = list(tools)
        return self

    def _next(self, messages: list[BaseMessage]) -> AIMessage:
        self.calls.append(list(messages))
        if not self.responses:
            return AIMessage(content="")
        return self.responses.pop(0)

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: Optional[list[str]] = None,
        run_manager=None,
        **kwargs: Any,
    ) -> ChatResult:
        return ChatResult(generations=[ChatGeneration(message=self._next(messages))])

    async def _astream(
        self,
        messages: list[BaseMessage],
        stop: Optional[list[str]] = None,
        run_manager=None,
        **kwargs: Any,
    ) -> AsyncIterator[ChatGenerationChunk]:
        message = self._next(messages)
        raw_calls = [(c["name"], json.dumps(c["args"]), c["id"]) for c in message.tool_calls]
        raw_calls += [(c["name"], c["args"], c["id"]) for c in message.invalid_tool_calls]
        # astream rejects a response with no chunks at all
        if message.content or not raw_calls:
            yield ChatGenerationChunk(message=AIMessageChunk(content=message.content))
        for index, (name, args, call_id) in enumerate(raw_calls):
            yield ChatGenerationChunk(
                message=AIMessageChunk(
                    content="",
                    tool_call_chunks=[
                        {"name": name, "args": args, "id": call_id, "index": index}
                    ],
                )
            )


class FailingChatModel(ScriptedChatModel):
    """Fails as soon as it is streamed."""

    async def _astream(self, messages, stop=None, run_manager=None, **kwargs):
        raise ConnectionError("backend unavailable")
        yield  # pragma: no cover


class StallingChatModel(ScriptedChatModel):
    """Streams "a", then stalls for ``stall`` seconds before streaming "b"."""

    stall: float = 5.0

    async def _astream(self, messages, stop=None, run_manager=None, **kwargs):
        self.calls.append(list(messages))
        yield ChatGenerationChunk(message=AIMessageChunk(content="a"))
        await asyncio.sleep(self.stall)
        yield ChatGenerationChunk(message=AIMessageChunk(content="b"))


def text_message(text: str) -> AIMessage:
    return AIMessage(content=text)


def tool_call_message(*calls: tuple[str, dict[str, Any], str], text: str = "") -> AIMessage:
    """AIMessage requesting ``(name, args, call_id)`` tool calls."""
    return AIMessage(
        content=text,
        tool_calls=[
            {"name": name, "args": args, "id": call_id, "type": "tool_call"}
            for name, args, call_id in calls
        ],
    )


def raw_tool_call_message(name: str, raw_args: str, call_id: str) -> AIMessage:
    """AIMessage whose tool call arguments are streamed verbatim as ``raw_args``."""
    return AIMessage(
        content="",
        invalid_tool_calls=[
            {
                "name": name,
                "args": raw_args,
                "id": call_id,
                "error": None,
                "type": "invalid_tool_call",
            }
        ],
    )
