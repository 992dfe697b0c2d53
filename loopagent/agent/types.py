"""
Type definitions for the Agent.

Includes:
- AgentOptions for agent configuration
- AgentState, the turn loop state machine
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from langchain_core.language_models.chat_models import BaseChatModel
from pydantic import BaseModel, ConfigDict, Field

from loopagent.hooks import HooksConfig
from loopagent.skills import SkillRef
from loopagent.tools.shell import ShellPolicy

InstructionsResolver = Callable[[Any], Union[str, Awaitable[str]]]


# ============================================================================
# Agent Configuration
# ============================================================================


class AgentOptions(BaseModel):
    """Configuration options for the Agent."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    instructions: Union[str, InstructionsResolver] = Field(
        ...,
        description="System instructions, or a callable (ctx) -> str resolved on the first send.",
    )
    # ToolDef or BuiltinTool instances, registered as given
    tools: list[Any] = Field(default_factory=list)
    skills: list[SkillRef] = Field(default_factory=list)
    model: Optional[str] = Field(None, description="Defaults to LOOPAGENT_MODEL.")
    cwd: Optional[str] = Field(None, description="Workspace root. Defaults to os.getcwd().")
    debug: bool = False
    session_id: Optional[str] = Field(None, description="Resume this session.")
    compression_threshold: Optional[float] = Field(
        None, gt=0, le=1, description="Fraction of the context window that triggers compression."
    )
    hooks: Optional[HooksConfig] = None
    shell_policy: ShellPolicy = Field(default_factory=ShellPolicy)
    # Anything with debug/info/warning/error methods
    logger: Optional[Any] = None
    chat_model: Optional[BaseChatModel] = Field(
        None, description="Use this chat model instead of building one from credentials."
    )


# ============================================================================
# Agent State
# ============================================================================


class AgentState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    STREAMING = "streaming"
    EXECUTING_TOOLS = "executing_tools"
