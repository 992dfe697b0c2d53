from loopagent.subagents.types import (
    AgentDefinition,
    AgentLoadError,
    AgentLoadResult,
    AgentTerminateMode,
    LocalAgentDefinition,
    OutputObject,
    RemoteAgentDefinition,
    SubagentActivityEvent,
    SubagentActivityType,
)
from loopagent.subagents.loader import load_agents_from_directory, parse_agent_file
from loopagent.subagents.executor import LocalAgentExecutor
from loopagent.subagents.remote import (
    A2AClient,
    RemoteAgentClientFactory,
    extract_text_from_result,
)
from loopagent.subagents.bridge import (
    QueryInput,
    close_remote_clients,
    define_sub_agent,
    load_sub_agents,
)

__all__ = [
    "AgentDefinition",
    "AgentLoadError",
    "AgentLoadResult",
    "AgentTerminateMode",
    "LocalAgentDefinition",
    "OutputObject",
    "RemoteAgentDefinition",
    "SubagentActivityEvent",
    "SubagentActivityType",
    "load_agents_from_directory",
    "parse_agent_file",
    "LocalAgentExecutor",
    "A2AClient",
    "RemoteAgentClientFactory",
    "extract_text_from_result",
    "QueryInput",
    "close_remote_clients",
    "define_sub_agent",
    "load_sub_agents",
]
