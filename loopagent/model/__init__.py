from loopagent.model.llm import (
    DEFAULT_MODEL,
    Credentials,
    ModelConfigService,
    ModelSettings,
    llm_call,
    resolve_auth,
)
from loopagent.model.content import Content, FunctionCall, FunctionResponse, Part
from loopagent.model.client import (
    ChatClient,
    CompressionInfo,
    StreamEvent,
    StreamEventType,
    ToolCallRequestInfo,
)

__all__ = [
    "DEFAULT_MODEL",
    "Credentials",
    "ModelConfigService",
    "ModelSettings",
    "llm_call",
    "resolve_auth",
    "Content",
    "FunctionCall",
    "FunctionResponse",
    "Part",
    "ChatClient",
    "CompressionInfo",
    "StreamEvent",
    "StreamEventType",
    "ToolCallRequestInfo",
]
