from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class HookEventName(str, Enum):
    """Lifecycle points at which hooks run."""

    BEFORE_TOOL = "BeforeTool"
    AFTER_TOOL = "AfterTool"


class HookType(str, Enum):
    COMMAND = "command"


class HookConfig(BaseModel):
    type: Literal[HookType.COMMAND] = Field(
        HookType.COMMAND, description="Only shell command hooks are supported."
    )
    command: str = Field(..., description="Shell command; receives JSON on stdin.")
    timeout: float = Field(60, description="Seconds before the hook is killed.")


class HookMatcher(BaseModel):
    matcher: str = Field(".*", description="Regex matched against the tool name.")
    hooks: list[HookConfig] = Field(default_factory=list)


HooksConfig = dict[HookEventName, list[HookMatcher]]


class HookOutcome(BaseModel):
    """Aggregated result of every hook fired for one event."""

    blocked: bool = False
    reason: Optional[str] = None
    additional_context: list[str] = Field(default_factory=list)
