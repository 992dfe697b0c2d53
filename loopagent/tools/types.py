"""
Tool definitions and the single tool invocation path.

This module provides:
- ToolDef: an immutable, schema-validated tool with an async action
- define_tool: builds a ToolDef (also usable as a decorator)
- ToolError: the recoverable failure a tool raises to report an error to
  the model without aborting the turn
- ToolResult: the serialized outcome of one invocation
- invoke_tool: validates arguments, runs the action, serializes the result
"""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Type

from pydantic import BaseModel, Field, ValidationError

if TYPE_CHECKING:
    from loopagent.agent.context import SessionContext


class ToolError(Exception):
    """Raise from a tool action to send the failure to the model."""

    def __init__(self, message: "str | BaseException"):
        super().__init__(str(message))


ToolAction = Callable[[Any, "SessionContext"], Awaitable[Any]]


class ToolResult(BaseModel):
    llm_content: str = Field(..., description="Text reported back to the model.")
    return_display: str = Field(..., description="Text shown to a human operator.")
    error: Optional[str] = Field(
        None, description="Error message when the invocation failed."
    )


@dataclass(frozen=True)
class ToolDef:
    name: str
    description: str
    input_schema: Type[BaseModel]
    action: ToolAction
    send_errors_to_model: bool = False

    def parameters_schema(self) -> dict[str, Any]:
        schema = self.input_schema.model_json_schema()
        schema.pop("title", None)
        return schema

    def function_schema(self) -> dict[str, Any]:
        """OpenAI-style function declaration used to bind the tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }


def define_tool(
    name: str,
    description: str,
    input_schema: Type[BaseModel],
    action: Optional[ToolAction] = None,
    send_errors_to_model: bool = False,
):
    """
    Define a tool.

    Example:
        class GreetInput(BaseModel):
            name: str

        @define_tool(name="greet", description="Greet someone", input_schema=GreetInput)
        async def greet(params: GreetInput, ctx: SessionContext) -> str:
            return f"Hello, {params.name}!"
    """

    def build(fn: ToolAction) -> ToolDef:
        return ToolDef(
            name=name,
            description=description,
            input_schema=input_schema,
            action=fn,
            send_errors_to_model=send_errors_to_model,
        )

    if action is not None:
        return build(action)
    return build


def serialize_result(value: Any) -> str:
    """Strings pass through verbatim, anything else becomes indented JSON."""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def error_result(message: str) -> ToolResult:
    return ToolResult(
        llm_content=f"Error: {message}",
        return_display=f"Error: {message}",
        error=message,
    )


async def invoke_tool(
    tool: ToolDef,
    raw_args: dict[str, Any],
    context: "SessionContext",
) -> ToolResult:
    """
    Run ``tool`` with ``raw_args`` under ``context``.

    Opted-in failures (``send_errors_to_model``) and ``ToolError`` come back
    as error results; anything else propagates and aborts the turn.
    """
    try:
        params = tool.input_schema.model_validate(raw_args or {})
    except ValidationError as e:
        return error_result(f"Invalid parameters for {tool.name}: {e}")

    try:
        result = await tool.action(params, context)
    except Exception as e:
        if tool.send_errors_to_model or isinstance(e, ToolError):
            return error_result(str(e))
        raise

    output = serialize_result(result)
    return ToolResult(llm_content=output, return_display=output)
