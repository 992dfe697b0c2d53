"""
loopagent - run a tool-using language-model agent from Python.

Usage:
    from loopagent import Agent, StreamEventType, define_tool

    agent = Agent.create(instructions="You are a helpful assistant.")
    async for event in agent.send_stream("Hello"):
        if event.type == StreamEventType.CONTENT:
            print(event.value, end="")
"""

from loopagent.errors import (
    A2AError,
    ConfigurationError,
    LoopAgentError,
    SessionNotFoundError,
    StreamError,
)
from loopagent.agent import Agent, AgentOptions, AgentState, SessionContext
from loopagent.hooks import HookConfig, HookEventName, HookMatcher, HooksConfig
from loopagent.model import StreamEvent, StreamEventType
from loopagent.skills import SkillRef, skill_dir
from loopagent.subagents import (
    AgentTerminateMode,
    SubagentActivityEvent,
    close_remote_clients,
    define_sub_agent,
    load_sub_agents,
)
from loopagent.tools import ShellPolicy, ToolDef, ToolError, define_tool
from loopagent.utils.session import SessionInfo

__version__ = "0.1.0"

__all__ = [
    "A2AError",
    "ConfigurationError",
    "LoopAgentError",
    "SessionNotFoundError",
    "StreamError",
    "Agent",
    "AgentOptions",
    "AgentState",
    "SessionContext",
    "HookConfig",
    "HookEventName",
    "HookMatcher",
    "HooksConfig",
    "StreamEvent",
    "StreamEventType",
    "SkillRef",
    "skill_dir",
    "AgentTerminateMode",
    "SubagentActivityEvent",
    "close_remote_clients",
    "define_sub_agent",
    "load_sub_agents",
    "ShellPolicy",
    "ToolDef",
    "ToolError",
    "define_tool",
    "SessionInfo",
]
