"""
Conversation content structures.

A conversation is an ordered list of ``Content`` turns. Each turn has a role
(``user`` or ``model``) and a list of ``Part`` objects. A part carries exactly
one of: text, a function call requested by the model, or a function response
fed back by the host. Unknown keys are kept so opaque parts survive a
persist/reload cycle.

This module also converts turns into ``langchain_core`` messages for the
chat model backend.
"""

import json
from typing import Any, Literal, Optional

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from pydantic import BaseModel, ConfigDict, Field


class FunctionCall(BaseModel):
    """A tool invocation requested by the model."""

    id: Optional[str] = Field(default=None, description="Call id issued by the model")
    name: str = Field(..., description="Name of the requested tool")
    args: dict[str, Any] = Field(default_factory=dict, description="Decoded arguments")


class FunctionResponse(BaseModel):
    """The result of a tool invocation, keyed to the call id."""

    id: Optional[str] = Field(default=None, description="Id of the answered call")
    name: str = Field(..., description="Name of the tool that produced it")
    response: dict[str, Any] = Field(
        default_factory=dict,
        description='Either {"output": ...} or {"error": ...}',
    )


class Part(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    text: Optional[str] = None
    function_call: Optional[FunctionCall] = Field(default=None, alias="functionCall")
    function_response: Optional[FunctionResponse] = Field(
        default=None, alias="functionResponse"
    )

    def to_record(self) -> dict[str, Any]:
        """Dump using the persisted (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Content(BaseModel):
    role: Literal["user", "model"] = Field(..., description="Turn author")
    parts: list[Part] = Field(default_factory=list)

    def text(self) -> str:
        return "".join(p.text for p in self.parts if p.text)

    def function_calls(self) -> list[FunctionCall]:
        return [p.function_call for p in self.parts if p.function_call]

    def function_responses(self) -> list[FunctionResponse]:
        return [p.function_response for p in self.parts if p.function_response]


def _to_part(item: Any) -> Part:
    if isinstance(item, Part):
        return item
    if isinstance(item, str):
        return Part(text=item)
    if isinstance(item, dict):
        return Part.model_validate(item)
    return Part.model_validate({"value": item})


def normalize_parts(content: Any) -> list[Part]:
    """
    Normalize persisted message content into parts.

    - falsy content yields no parts
    - a bare string becomes one text part
    - a list becomes one part per element
    - anything else becomes a single opaque part
    """
    if not content:
        return []
    if isinstance(content, str):
        return [Part(text=content)]
    if isinstance(content, (list, tuple)):
        return [_to_part(item) for item in content]
    return [_to_part(content)]


# ======================================================================
## langchain_core conversion
# ======================================================================


def _response_to_text(response: FunctionResponse) -> str:
    payload = response.response
    if "error" in payload and "output" not in payload:
        return f"Error: {payload['error']}"
    output = payload.get("output", payload)
    return output if isinstance(output, str) else json.dumps(output, default=str)


def to_langchain_messages(
    history: list[Content],
    system_instruction: Optional[str] = None,
) -> list[BaseMessage]:
    """Convert a transcript into chat-model messages."""
    messages: list[BaseMessage] = []
    if system_instruction:
        messages.append(SystemMessage(content=system_instruction))

    for content in history:
        if content.role == "model":
            messages.append(
                AIMessage(
                    content=content.text(),
                    tool_calls=[
                        {
                            "id": call.id or "",
                            "name": call.name,
                            "args": call.args,
                        }
                        for call in content.function_calls()
                    ],
                )
            )
            continue

        for response in content.function_responses():
            messages.append(
                ToolMessage(
                    content=_response_to_text(response),
                    tool_call_id=response.id or "",
                    name=response.name,
                )
            )
        text = content.text()
        if text:
            messages.append(HumanMessage(content=text))

    return messages
