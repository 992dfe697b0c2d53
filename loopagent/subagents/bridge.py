"""
Sub-agents as tools.

This module provides:
- define_sub_agent: a local sub-agent built in code, prompts static or dynamic
- load_sub_agents: one tool per agent definition file in a directory
- wrap_local_agent_as_tool / wrap_remote_agent_as_tool: the shared wrappers

Every wrapped sub-agent sends its errors to the model. A local run that ends
with anything but GOAL becomes a ToolError carrying the terminate reason.
"""

import asyncio
import inspect
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Type, Union

from pydantic import BaseModel, Field

from loopagent.agent.context import SessionContext
from loopagent.subagents.executor import ActivityCallback, LocalAgentExecutor
from loopagent.subagents.loader import load_agents_from_directory
from loopagent.subagents.remote import RemoteAgentClientFactory, extract_text_from_result
from loopagent.subagents.types import (
    AgentTerminateMode,
    LocalAgentDefinition,
    ModelConfig,
    PromptConfig,
    RemoteAgentDefinition,
    RunConfig,
    ToolConfig,
)
from loopagent.tools.types import ToolDef, ToolError, define_tool
from loopagent.utils.logger import get_logger

log = get_logger(__name__)

PromptResolver = Callable[[Any, SessionContext], Union[str, Awaitable[str]]]
PromptValue = Union[str, PromptResolver]


class QueryInput(BaseModel):
    query: Optional[str] = Field(None, description="Input query for the sub-agent")


# Shared by every remote agent tool
_client_factory: Optional[RemoteAgentClientFactory] = None


def get_client_factory() -> RemoteAgentClientFactory:
    global _client_factory
    if _client_factory is None:
        _client_factory = RemoteAgentClientFactory()
    return _client_factory


async def close_remote_clients() -> None:
    """Close the HTTP connections of every remote sub-agent. Later calls reconnect."""
    global _client_factory
    if _client_factory is not None:
        factory, _client_factory = _client_factory, None
        await factory.aclose()


# ======================================================================
## Helpers
# ======================================================================


def simple_json_schema(input_schema: Type[BaseModel]) -> dict[str, Any]:
    """Flat object schema: every field as a string, required unless optional."""
    properties: dict[str, dict[str, Any]] = {}
    required: list[str] = []
    for name, info in input_schema.model_fields.items():
        prop: dict[str, Any] = {"type": "string"}
        if info.description:
            prop["description"] = info.description
        properties[name] = prop
        if info.is_required():
            required.append(name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _params_dict(params: Any) -> dict[str, Any]:
    if isinstance(params, BaseModel):
        return params.model_dump()
    return dict(params or {})


async def resolve_prompt_value(
    value: PromptValue, params: Any, ctx: SessionContext
) -> str:
    if not callable(value):
        return value
    resolved = value(params, ctx)
    if inspect.isawaitable(resolved):
        resolved = await resolved
    return resolved


def build_local_agent_definition(
    name: str,
    description: str,
    input_schema: Type[BaseModel],
    system_prompt: str,
    query: Optional[str] = None,
    model: Optional[str] = None,
    max_turns: Optional[int] = None,
    max_time_minutes: Optional[float] = None,
    tools: Optional[list[str]] = None,
) -> LocalAgentDefinition:
    return LocalAgentDefinition(
        name=name,
        description=description,
        input_schema=simple_json_schema(input_schema),
        prompt_config=PromptConfig(system_prompt=system_prompt, query=query),
        model_settings=ModelConfig(model=model or "inherit"),
        run_config=RunConfig(max_turns=max_turns, max_time_minutes=max_time_minutes),
        tool_config=ToolConfig(tools=tools) if tools is not None else None,
    )


async def execute_local_agent(
    definition: LocalAgentDefinition,
    params: dict[str, Any],
    ctx: SessionContext,
    on_activity: Optional[ActivityCallback] = None,
) -> str:
    """
    Run ``definition`` under the caller's agent and return its result.

    Raises:
        ToolError: The sub-agent stopped for any reason other than GOAL
    """
    executor = await LocalAgentExecutor.create(definition, ctx, on_activity)
    output = await executor.run(params, asyncio.Event())

    if output.terminate_reason != AgentTerminateMode.GOAL:
        raise ToolError(
            f'Sub-agent "{definition.name}" terminated: {output.terminate_reason.value}'
        )
    return output.result


# ======================================================================
## Wrappers
# ======================================================================


def wrap_local_agent_as_tool(
    definition: LocalAgentDefinition,
    input_schema: Type[BaseModel],
    on_activity: Optional[ActivityCallback] = None,
) -> ToolDef:
    async def action(params: BaseModel, ctx: SessionContext) -> str:
        return await execute_local_agent(
            definition, _params_dict(params), ctx, on_activity
        )

    return define_tool(
        name=definition.name,
        description=definition.description,
        input_schema=input_schema,
        action=action,
        send_errors_to_model=True,
    )


def wrap_remote_agent_as_tool(
    definition: RemoteAgentDefinition,
    input_schema: Type[BaseModel],
) -> ToolDef:
    async def action(params: BaseModel, ctx: SessionContext) -> str:
        client = await get_client_factory().create_from_url(definition.agent_card_url)
        values = _params_dict(params)
        if "query" in values:
            text = str(values["query"] or "")
        else:
            text = json.dumps(values)
        result = await client.send_message(text, blocking=True)
        return extract_text_from_result(result)

    return define_tool(
        name=definition.name,
        description=definition.description,
        input_schema=input_schema,
        action=action,
        send_errors_to_model=True,
    )


# ======================================================================
## Public API
# ======================================================================


def define_sub_agent(
    name: str,
    description: str,
    input_schema: Type[BaseModel],
    system_prompt: PromptValue,
    query: Optional[PromptValue] = None,
    model: Optional[str] = None,
    max_turns: Optional[int] = None,
    max_time_minutes: Optional[float] = None,
    tools: Optional[list[str]] = None,
    on_activity: Optional[ActivityCallback] = None,
) -> ToolDef:
    """
    Define a local sub-agent. The result can be passed in ``AgentOptions.tools``.

    ``system_prompt`` and ``query`` are strings or callables
    ``(params, ctx) -> str`` (sync or async) resolved at call time. Either way
    the text still goes through ``${name}`` substitution against the params.

    Example:
        class ReviewInput(BaseModel):
            path: str = Field(..., description="File to review")

        reviewer = define_sub_agent(
            name="reviewer",
            description="Reviews one file",
            input_schema=ReviewInput,
            system_prompt="Review ${path} and list problems.",
            tools=["read_file"],
        )
    """
    options = dict(
        name=name,
        description=description,
        input_schema=input_schema,
        model=model,
        max_turns=max_turns,
        max_time_minutes=max_time_minutes,
        tools=tools,
    )

    if not callable(system_prompt) and not callable(query):
        definition = build_local_agent_definition(
            system_prompt=system_prompt, query=query, **options
        )
        return wrap_local_agent_as_tool(definition, input_schema, on_activity)

    async def action(params: BaseModel, ctx: SessionContext) -> str:
        resolved_system_prompt = await resolve_prompt_value(system_prompt, params, ctx)
        resolved_query = (
            await resolve_prompt_value(query, params, ctx) if query is not None else None
        )
        definition = build_local_agent_definition(
            system_prompt=resolved_system_prompt, query=resolved_query, **options
        )
        return await execute_local_agent(
            definition, _params_dict(params), ctx, on_activity
        )

    return define_tool(
        name=name,
        description=description,
        input_schema=input_schema,
        action=action,
        send_errors_to_model=True,
    )


def load_sub_agents(
    dir_path: str | Path,
    on_activity: Optional[ActivityCallback] = None,
) -> list[ToolDef]:
    """
    One tool per agent definition file in ``dir_path``. Files that fail to
    load are logged and skipped.
    """
    result = load_agents_from_directory(dir_path)
    for error in result.errors:
        log.error(f"[subagent] Failed to load {error.file_path}: {error.message}")

    tools: list[ToolDef] = []
    for definition in result.agents:
        if isinstance(definition, LocalAgentDefinition):
            tools.append(wrap_local_agent_as_tool(definition, QueryInput, on_activity))
        else:
            tools.append(wrap_remote_agent_as_tool(definition, QueryInput))
    return tools
