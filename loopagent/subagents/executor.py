"""
Local sub-agent executor.

Runs a ``LocalAgentDefinition`` as a nested agent with its own ChatClient,
using the same stream -> tool call -> scheduler protocol as the parent, under
a turn and wall-time budget. The run ends with GOAL when the model calls
``complete_task`` or answers with text and no tool calls.
"""

import asyncio
import re
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

from loopagent.agent.context import SessionContext
from loopagent.model.client import (
    ChatClient,
    StreamEvent,
    StreamEventType,
    ToolCallRequestInfo,
    extract_tool_calls,
)
from loopagent.model.content import Part
from loopagent.model.llm import ModelSettings
from loopagent.subagents.types import (
    DEFAULT_MAX_TIME_MINUTES,
    DEFAULT_MAX_TURNS,
    DEFAULT_QUERY,
    INHERIT_MODEL,
    AgentTerminateMode,
    LocalAgentDefinition,
    OutputObject,
    SubagentActivityEvent,
    SubagentActivityType,
)
from loopagent.tools.registry import BuiltinTool, ToolRegistry
from loopagent.tools.scheduler import ToolCallStatus, ToolScheduler
from loopagent.tools.types import ToolResult
from loopagent.utils.logger import get_logger

if TYPE_CHECKING:
    from loopagent.agent.agent import Agent

log = get_logger(__name__)

COMPLETE_TASK_TOOL_NAME = "complete_task"

ActivityCallback = Callable[[SubagentActivityEvent], None]

_PLACEHOLDER = re.compile(r"\$\{(\w+)\}")

COMPLETION_INSTRUCTIONS = (
    "\n\nWhen you have finished, call the `complete_task` tool with your final "
    "answer in the `result` argument. Do not stop before calling it."
)


def template_string(template: str, inputs: dict[str, Any]) -> str:
    """
    Replace ``${name}`` placeholders with values from ``inputs``.

    Raises:
        ValueError: A placeholder has no value in ``inputs``
    """
    missing = [key for key in _PLACEHOLDER.findall(template) if key not in inputs]
    if missing:
        raise ValueError(
            f"Missing input values for placeholders: {', '.join(sorted(set(missing)))}"
        )
    return _PLACEHOLDER.sub(lambda m: str(inputs[m.group(1)]), template)


def _complete_task_tool() -> BuiltinTool:
    async def run(args: dict[str, Any]) -> ToolResult:
        return ToolResult(llm_content="Task completed.", return_display="Task completed.")

    return BuiltinTool(
        name=COMPLETE_TASK_TOOL_NAME,
        description="Finish the task and return the final result to the caller.",
        parameters={
            "type": "object",
            "properties": {
                "result": {
                    "type": "string",
                    "description": "The final answer or result of the task.",
                }
            },
            "required": ["result"],
        },
        run=run,
    )


class LocalAgentExecutor:
    def __init__(
        self,
        definition: LocalAgentDefinition,
        chat_client: ChatClient,
        tool_registry: ToolRegistry,
        parent_context: SessionContext,
        on_activity: Optional[ActivityCallback] = None,
    ) -> None:
        self.definition = definition
        self.chat_client = chat_client
        self.tool_registry = tool_registry
        self.parent_context = parent_context
        self.on_activity = on_activity
        self.agent_id = f"{definition.name}-{uuid.uuid4().hex[:8]}"
        self.turns = 0
        self.scheduler = ToolScheduler(callbacks=self)

        run_config = definition.run_config
        self.max_turns = run_config.max_turns or DEFAULT_MAX_TURNS
        self.max_time_minutes = run_config.max_time_minutes or DEFAULT_MAX_TIME_MINUTES

    @classmethod
    async def create(
        cls,
        definition: LocalAgentDefinition,
        parent_context: SessionContext,
        on_activity: Optional[ActivityCallback] = None,
    ) -> "LocalAgentExecutor":
        """
        Build an executor that runs under ``parent_context``'s agent.

        Raises:
            ValueError: ``tool_config`` names a tool the parent does not have
        """
        parent: "Agent" = parent_context.agent
        parent_registry = parent.get_tool_registry()

        if definition.tool_config is not None:
            try:
                registry = parent_registry.subset(
                    n for n in definition.tool_config.tools if n != definition.name
                )
            except KeyError as e:
                raise ValueError(
                    f"Sub-agent {definition.name!r} requests an unknown tool: {e}"
                ) from e
        else:
            registry = parent_registry.without(definition.name)
        registry.register(_complete_task_tool())

        # "inherit" follows the parent's model at call time
        model_service = parent.get_model_config_service()
        settings = definition.model_settings
        alias = f"{definition.name}-config"
        model_service.register_runtime_model_config(
            alias,
            ModelSettings(
                model=(
                    parent.get_active_model()
                    if settings.model == INHERIT_MODEL
                    else settings.model
                ),
                temperature=settings.temperature,
            ),
        )

        chat_client = ChatClient(
            model_service,
            model_alias=alias,
            tools_provider=registry.function_schemas,
            logger=log,
        )
        return cls(definition, chat_client, registry, parent_context, on_activity)

    # ------------------------------------------------------------------
    # Activity reporting
    # ------------------------------------------------------------------

    def _emit(self, type: SubagentActivityType, **data: Any) -> None:
        if self.on_activity is None:
            return
        try:
            self.on_activity(
                SubagentActivityEvent(
                    agent_name=self.definition.name, type=type, data=data
                )
            )
        except Exception as e:
            log.warning(f"Sub-agent activity callback failed: {e}")

    def on_tool_call_update(
        self,
        request: ToolCallRequestInfo,
        status: ToolCallStatus,
        output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        if status == ToolCallStatus.EXECUTING:
            self._emit(
                SubagentActivityType.TOOL_CALL_START,
                name=request.name,
                args=request.args,
            )
        else:
            self._emit(
                SubagentActivityType.TOOL_CALL_END,
                name=request.name,
                output=output,
                error=error,
            )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(
        self,
        inputs: dict[str, Any],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> OutputObject:
        """Run the sub-agent to completion. Never raises for run failures."""
        cancel_event = cancel_event or asyncio.Event()
        started = time.monotonic()
        self.turns = 0

        try:
            prompt = self.definition.prompt_config
            system_prompt = template_string(prompt.system_prompt, inputs)
            query = template_string(prompt.query or DEFAULT_QUERY, inputs)
            self.chat_client.set_system_instruction(system_prompt + COMPLETION_INSTRUCTIONS)

            output = await asyncio.wait_for(
                self._run_loop(query, cancel_event),
                timeout=self.max_time_minutes * 60,
            )
        except asyncio.TimeoutError:
            output = OutputObject(
                result=f"Agent timed out after {self.max_time_minutes} minutes.",
                terminate_reason=AgentTerminateMode.TIMEOUT,
            )
        except Exception as e:
            log.error(f"Sub-agent {self.definition.name} failed: {e}")
            self._emit(SubagentActivityType.ERROR, error=str(e))
            output = OutputObject(
                result=f"Agent failed: {e}", terminate_reason=AgentTerminateMode.ERROR
            )

        log.info(
            f"Sub-agent {self.agent_id} finished with {output.terminate_reason.value} "
            f"after {self.turns} turn(s) in {time.monotonic() - started:.1f}s"
        )
        return output

    async def _run_loop(self, query: str, cancel_event: asyncio.Event) -> OutputObject:
        parts = [Part(text=query)]

        while True:
            if cancel_event.is_set():
                return self._aborted()
            if self.turns >= self.max_turns:
                return OutputObject(
                    result=f"Agent reached the maximum of {self.max_turns} turns.",
                    terminate_reason=AgentTerminateMode.MAX_TURNS,
                )
            self.turns += 1

            events: list[StreamEvent] = []
            text: list[str] = []
            async for event in self.chat_client.send_message_stream(
                parts, cancel_event, prompt_id=f"{self.agent_id}#{self.turns}"
            ):
                events.append(event)
                if event.type == StreamEventType.CONTENT:
                    text.append(event.value)
                    self._emit(SubagentActivityType.THOUGHT_CHUNK, text=event.value)

            if cancel_event.is_set():
                return self._aborted()

            requests = extract_tool_calls(events)
            for request in requests:
                if request.name == COMPLETE_TASK_TOOL_NAME:
                    return OutputObject(
                        result=str(request.args.get("result", "")),
                        terminate_reason=AgentTerminateMode.GOAL,
                    )
            if not requests:
                return OutputObject(
                    result="".join(text), terminate_reason=AgentTerminateMode.GOAL
                )

            resolver = self.tool_registry.scoped(self._build_context())
            completed = await self.scheduler.run(requests, resolver, cancel_event)
            parts = [p for call in completed for p in call.response.response_parts]

    def _build_context(self) -> SessionContext:
        parent = self.parent_context
        return SessionContext(
            session_id=self.agent_id,
            cwd=parent.cwd,
            transcript=tuple(self.chat_client.get_history()),
            timestamp=datetime.now(timezone.utc).isoformat(),
            fs=parent.fs,
            shell=parent.shell,
            agent=parent.agent,
        )

    def _aborted(self) -> OutputObject:
        return OutputObject(
            result="Agent was cancelled.", terminate_reason=AgentTerminateMode.ABORTED
        )
