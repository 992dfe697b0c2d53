"""
Core Agent implementation.

The agent runs the turn loop:

    prompt -> stream model output -> extract tool calls -> execute them with a
    round-scoped SessionContext -> feed the function responses back -> repeat

until the model answers without requesting tools. Every backend event is
re-yielded to the caller unmodified, in generation order.

Initialization (credentials, session resume, skills, tool registration) runs
once, lazily, on the first ``send_stream``.
"""

import asyncio
import inspect
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator, Optional

from loopagent.agent.context import AgentFsImpl, AgentShellImpl, SessionContext
from loopagent.agent.types import AgentOptions, AgentState
from loopagent.errors import SessionNotFoundError
from loopagent.hooks import HookRunner
from loopagent.model.client import (
    ChatClient,
    StreamEvent,
    ToolCallRequestInfo,
    extract_tool_calls,
)
from loopagent.model.content import Content, Part
from loopagent.model.llm import DEFAULT_MODEL, ModelConfigService, resolve_auth
from loopagent.skills import SkillManager, load_skills_from_dir
from loopagent.tools.registry import ToolRegistry
from loopagent.tools.scheduler import ToolScheduler
from loopagent.tools.shell import ShellExecutionService
from loopagent.tools.skill import ACTIVATE_SKILL_TOOL_NAME, create_activate_skill_tool
from loopagent.utils.logger import get_logger, set_log_level
from loopagent.utils.session import (
    ChatRecordingService,
    SessionInfo,
    list_sessions,
    load_session,
    message_records_to_history,
)
from loopagent.utils.storage import Storage
from loopagent.utils.workspace import WorkspaceContext


class Agent:
    """
    Non-interactive agent with typed tools, sub-agents and resumable sessions.

    Usage:
        agent = Agent.create(instructions="You are a helpful assistant.")
        async for event in agent.send_stream("What is in README.md?"):
            if event.type == StreamEventType.CONTENT:
                print(event.value, end="")
    """

    def __init__(self, options: AgentOptions):
        self.options = options
        self.state = AgentState.UNINITIALIZED

        if options.logger is not None:
            self.log = options.logger
        else:
            self.log = get_logger("loopagent.agent")
            if options.debug:
                set_log_level("DEBUG")

        self.cwd = str(Path(options.cwd or os.getcwd()).resolve())
        self._session_id = str(uuid.uuid4())
        self._instructions = options.instructions
        # Static instructions are installed now; callables wait for the first send
        self._instructions_resolved = isinstance(options.instructions, str)

        self.storage = Storage(self.cwd)
        self.workspace = WorkspaceContext(
            self.cwd, temp_dir=self.storage.get_project_temp_dir()
        )

        chat_model = options.chat_model
        self.model_config_service = ModelConfigService(
            model=options.model or DEFAULT_MODEL,
            chat_model_factory=(
                (lambda settings: chat_model) if chat_model is not None else None
            ),
        )
        self.tool_registry = ToolRegistry()
        self.skill_manager = SkillManager()

        self.recorder = ChatRecordingService(
            self.storage.get_chats_dir(), self._session_id, self.storage.project_hash
        )
        self.chat_client = ChatClient(
            self.model_config_service,
            system_instruction=self._instructions if self._instructions_resolved else "",
            tools_provider=self.tool_registry.function_schemas,
            recorder=self.recorder,
            compression_threshold=options.compression_threshold,
            logger=self.log,
        )

        self.hook_runner = HookRunner(options.hooks, self._session_id, self.cwd)
        self.scheduler = ToolScheduler(hook_runner=self.hook_runner, logger=self.log)
        self.fs = AgentFsImpl(
            self.workspace.validate_path_access, self.workspace.resolve
        )
        self.shell = AgentShellImpl(
            options.shell_policy, ShellExecutionService(), self.cwd
        )

        self._initialized = False

        self.log.info(
            f"Agent created: model={self.model_config_service.get_active_model()} "
            f"cwd={self.cwd} session={self._session_id}"
        )

    @classmethod
    def create(cls, options: Optional[AgentOptions] = None, **kwargs) -> "Agent":
        """
        Create an Agent from ``options`` or from AgentOptions keyword arguments.

        Example:
            agent = Agent.create(instructions="Be terse.", tools=[save_note])
        """
        return cls(options or AgentOptions(**kwargs))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_session_id(self) -> str:
        return self._session_id

    def get_active_model(self) -> str:
        return self.model_config_service.get_active_model()

    def get_model_config_service(self) -> ModelConfigService:
        return self.model_config_service

    def get_tool_registry(self) -> ToolRegistry:
        return self.tool_registry

    def get_chat_client(self) -> ChatClient:
        return self.chat_client

    def get_skill_manager(self) -> SkillManager:
        return self.skill_manager

    async def list_sessions(self) -> list[SessionInfo]:
        """Sessions recorded for this agent's project, newest first."""
        return await list_sessions(self.storage.get_chats_dir())

    def create_session_context(self) -> SessionContext:
        """Snapshot of the session as of now, for one tool round."""
        return SessionContext(
            session_id=self._session_id,
            cwd=self.cwd,
            transcript=tuple(self.chat_client.get_history()),
            timestamp=datetime.now(timezone.utc).isoformat(),
            fs=self.fs,
            shell=self.shell,
            agent=self,
        )

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    async def send_stream(
        self,
        prompt: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """
        Send ``prompt`` and yield every backend event until the model stops
        requesting tools.

        Args:
            prompt: The user's message
            cancel_event: When set, the current stream stops and unfinished
                tool calls are cancelled

        Yields:
            StreamEvent objects, unmodified and in generation order

        Raises:
            ConfigurationError: Credentials could not be resolved
            StreamError: The backend stream failed
        """
        await self._initialize()
        cancel_event = cancel_event or asyncio.Event()

        if not self._instructions_resolved:
            await self._resolve_instructions(self.create_session_context())

        request: list[Part] = [Part(text=prompt)]
        rounds = 0
        self.log.info(f"Sending prompt: '{prompt[:50]}' session={self._session_id}")

        try:
            while True:
                rounds += 1
                self.state = AgentState.STREAMING
                events: list[StreamEvent] = []
                async for event in self.chat_client.send_message_stream(
                    request, cancel_event, prompt_id=self._session_id
                ):
                    yield event
                    events.append(event)

                tool_calls = self._extract_tool_calls(events)
                if not tool_calls:
                    break

                self.state = AgentState.EXECUTING_TOOLS
                self.log.debug(
                    f"Round {rounds}: executing {[c.name for c in tool_calls]}"
                )
                resolver = self.tool_registry.scoped(self.create_session_context())
                completed = await self.scheduler.run(tool_calls, resolver, cancel_event)

                request = [p for call in completed for p in call.response.response_parts]

                if cancel_event.is_set():
                    # Keep every function call paired with a response
                    await self.chat_client.add_history(Content(role="user", parts=request))
                    self.log.info(f"Turn cancelled after {rounds} round(s)")
                    break
        finally:
            self.state = AgentState.READY

        self.log.info(f"Turn finished after {rounds} round(s)")

    def _extract_tool_calls(self, events: list[StreamEvent]) -> list[ToolCallRequestInfo]:
        calls = extract_tool_calls(events)
        for call in calls:
            call.prompt_id = self._session_id
            call.is_client_initiated = False
        return calls

    async def _resolve_instructions(self, ctx: SessionContext) -> None:
        resolved = self._instructions(ctx)
        if inspect.isawaitable(resolved):
            resolved = await resolved
        self.chat_client.set_system_instruction(resolved)
        self._instructions_resolved = True
        self.log.debug(f"Resolved dynamic instructions ({len(resolved)} chars)")

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def _initialize(self) -> None:
        if self._initialized:
            return

        self.state = AgentState.INITIALIZING
        try:
            if self.model_config_service.needs_credentials:
                self.model_config_service.set_credentials(resolve_auth())

            if self.options.session_id:
                await self._resume_session(self.options.session_id)

            self._load_skills()
            self._register_tools()
        except BaseException:
            self.state = AgentState.UNINITIALIZED
            raise

        self._initialized = True
        self.state = AgentState.READY
        self.log.debug(f"Agent initialized with tools: {self.tool_registry.names()}")

    async def _resume_session(self, session_id: str) -> None:
        sessions = await list_sessions(self.storage.get_chats_dir())
        target = next((s for s in sessions if s.session_id == session_id), None)
        if target is None:
            self.log.warning(f"{SessionNotFoundError(session_id)}; starting a new session")
            return

        resumed = await load_session(target.file_path)
        history = message_records_to_history(resumed.conversation.messages)
        await self.chat_client.resume_chat(history, resumed)

        self._session_id = target.session_id
        self.hook_runner.session_id = target.session_id
        self.log.info(f"Resumed session {target.session_id} ({len(history)} turns)")

    def _load_skills(self) -> None:
        for ref in self.options.skills:
            try:
                self.skill_manager.add_skills(load_skills_from_dir(ref.path))
            except OSError as e:
                self.log.error(f"Failed to load skills from {ref.path}: {e}")

        # Rebuilt so the name enum covers every loaded skill
        if self.skill_manager.get_skills():
            self.tool_registry.unregister(ACTIVATE_SKILL_TOOL_NAME)
            self.tool_registry.register(create_activate_skill_tool(self.skill_manager))

    def _register_tools(self) -> None:
        for tool in self.options.tools:
            self.tool_registry.register(tool)
