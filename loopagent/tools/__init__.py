from loopagent.tools.types import (
    ToolDef,
    ToolError,
    ToolResult,
    define_tool,
    invoke_tool,
)
from loopagent.tools.registry import (
    BuiltinTool,
    RegisteredTool,
    ScopedResolver,
    ToolRegistry,
)
from loopagent.tools.shell import (
    ShellExecutionResult,
    ShellExecutionService,
    ShellPolicy,
)

__all__ = [
    "ToolDef",
    "ToolError",
    "ToolResult",
    "define_tool",
    "invoke_tool",
    "BuiltinTool",
    "RegisteredTool",
    "ScopedResolver",
    "ToolRegistry",
    "ShellExecutionResult",
    "ShellExecutionService",
    "ShellPolicy",
]
