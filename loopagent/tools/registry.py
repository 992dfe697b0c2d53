"""
Tool registry and per-round resolution.

This module provides:
- BuiltinTool: a tool with no session-context dependency
- RegisteredTool: a tagged registry entry ("sdk" for ToolDefs, "builtin")
- ToolRegistry: the live set of tools an Agent can resolve
- ScopedResolver: name -> callable mapping bound to one round's context
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Literal, Optional, Union

from loopagent.tools.types import ToolDef, ToolResult, invoke_tool
from loopagent.utils.logger import get_logger

if TYPE_CHECKING:
    from loopagent.agent.context import SessionContext

log = get_logger(__name__)

ToolCallable = Callable[[dict[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True)
class BuiltinTool:
    name: str
    description: str
    parameters: dict[str, Any]
    run: ToolCallable

    def function_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class RegisteredTool:
    """A registry entry. ``kind`` selects how the tool is invoked."""

    name: str
    # sdk: takes a SessionContext, builtin: context free
    kind: Literal["sdk", "builtin"]
    tool: Union[ToolDef, BuiltinTool]

    @property
    def description(self) -> str:
        return self.tool.description

    def function_schema(self) -> dict[str, Any]:
        return self.tool.function_schema()


def _bind(entry: RegisteredTool, context: "SessionContext") -> ToolCallable:
    if entry.kind == "sdk":
        tool = entry.tool

        async def call(args: dict[str, Any]) -> ToolResult:
            return await invoke_tool(tool, args, context)

        return call
    return entry.tool.run


class ScopedResolver:
    """
    Resolves tool names for a single round. Built fresh by
    ``ToolRegistry.scoped`` and discarded once the round completes.
    """

    def __init__(self, callables: dict[str, ToolCallable]) -> None:
        self._callables = callables

    def get(self, name: str) -> Optional[ToolCallable]:
        return self._callables.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._callables

    def names(self) -> list[str]:
        return list(self._callables)


class ToolRegistry:
    def __init__(self, tools: Iterable[Union[ToolDef, BuiltinTool]] = ()) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Union[ToolDef, BuiltinTool, RegisteredTool]) -> None:
        if isinstance(tool, RegisteredTool):
            entry = tool
        else:
            entry = RegisteredTool(
                name=tool.name,
                kind="sdk" if isinstance(tool, ToolDef) else "builtin",
                tool=tool,
            )
        if entry.name in self._tools:
            log.warning(f"Tool {entry.name} is already registered, replacing it")
        self._tools[entry.name] = entry

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def function_schemas(self) -> list[dict[str, Any]]:
        return [entry.function_schema() for entry in self._tools.values()]

    def subset(self, names: Iterable[str]) -> "ToolRegistry":
        """
        Registry restricted to ``names``.

        Raises:
            KeyError: a name is not registered
        """
        restricted = ToolRegistry()
        for name in names:
            entry = self._tools.get(name)
            if entry is None:
                raise KeyError(f"Tool {name!r} is not registered")
            restricted.register(entry)
        return restricted

    def without(self, name: str) -> "ToolRegistry":
        return self.subset(n for n in self._tools if n != name)

    def scoped(self, context: "SessionContext") -> ScopedResolver:
        """Bind every context-dependent tool to ``context`` for one round."""
        return ScopedResolver(
            {name: _bind(entry, context) for name, entry in self._tools.items()}
        )
