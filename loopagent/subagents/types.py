from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_QUERY = "Get Started!"
DEFAULT_MAX_TURNS = 15
DEFAULT_MAX_TIME_MINUTES = 5.0
INHERIT_MODEL = "inherit"


class AgentTerminateMode(str, Enum):
    """Why a local sub-agent stopped. Only GOAL counts as success."""

    GOAL = "GOAL"
    MAX_TURNS = "MAX_TURNS"
    TIMEOUT = "TIMEOUT"
    ERROR = "ERROR"
    ABORTED = "ABORTED"


# ======================================================================
## Agent definitions
# ======================================================================


class PromptConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    system_prompt: str = Field(..., alias="systemPrompt")
    query: Optional[str] = Field(
        None, description="Initial user message. Defaults to 'Get Started!'."
    )


class ModelConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = Field(
        INHERIT_MODEL, description="Model name, or 'inherit' for the parent's."
    )
    temperature: Optional[float] = None


class RunConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    max_turns: Optional[int] = Field(None, alias="maxTurns", gt=0)
    max_time_minutes: Optional[float] = Field(None, alias="maxTimeMinutes", gt=0)


class ToolConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    tools: list[str] = Field(default_factory=list)


class LocalAgentDefinition(BaseModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, protected_namespaces=()
    )

    kind: Literal["local"] = "local"
    name: str
    description: str
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        alias="inputSchema",
    )
    prompt_config: PromptConfig = Field(..., alias="promptConfig")
    model_settings: ModelConfig = Field(
        default_factory=ModelConfig, alias="modelConfig"
    )
    run_config: RunConfig = Field(default_factory=RunConfig, alias="runConfig")
    tool_config: Optional[ToolConfig] = Field(None, alias="toolConfig")


class RemoteAgentDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["remote"] = "remote"
    name: str
    description: str
    agent_card_url: str = Field(..., alias="agentCardUrl")


AgentDefinition = Annotated[
    Union[LocalAgentDefinition, RemoteAgentDefinition], Field(discriminator="kind")
]


# ======================================================================
## Run results and activity
# ======================================================================


class OutputObject(BaseModel):
    result: str
    terminate_reason: AgentTerminateMode


class SubagentActivityType(str, Enum):
    TOOL_CALL_START = "TOOL_CALL_START"
    TOOL_CALL_END = "TOOL_CALL_END"
    THOUGHT_CHUNK = "THOUGHT_CHUNK"
    ERROR = "ERROR"


@dataclass
class SubagentActivityEvent:
    agent_name: str
    type: SubagentActivityType
    data: dict[str, Any] = field(default_factory=dict)


class AgentLoadError(Exception):
    def __init__(self, file_path: str, message: str):
        self.file_path = file_path
        self.message = message
        super().__init__(f"{file_path}: {message}")


@dataclass
class AgentLoadResult:
    agents: list[Union[LocalAgentDefinition, RemoteAgentDefinition]] = field(
        default_factory=list
    )
    errors: list[AgentLoadError] = field(default_factory=list)
