"""
Agent module - the turn loop and its per-round tool context.

Core components:
- Agent: owns configuration, the tool registry and the turn loop
- AgentOptions: pydantic configuration for an Agent
- SessionContext: what a tool action sees during one round

Usage:
    from loopagent.agent import Agent

    agent = Agent.create(instructions="You are a helpful assistant.")
    async for event in agent.send_stream("Hello"):
        print(event)
"""

from loopagent.agent.context import (
    AgentFs,
    AgentFsImpl,
    AgentShell,
    AgentShellImpl,
    SessionContext,
    ShellResult,
)
from loopagent.agent.types import AgentOptions, AgentState
from loopagent.agent.agent import Agent

__all__ = [
    "Agent",
    "AgentOptions",
    "AgentState",
    "AgentFs",
    "AgentFsImpl",
    "AgentShell",
    "AgentShellImpl",
    "SessionContext",
    "ShellResult",
]
