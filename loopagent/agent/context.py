import os

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Protocol

import aiofiles

from loopagent.model.content import Content
from loopagent.tools.shell import ShellExecutionService, ShellPolicy
from loopagent.utils.logger import get_logger
from loopagent.utils.workspace import PathOperation

if TYPE_CHECKING:
    from loopagent.agent.agent import Agent

log = get_logger(__name__)

PathValidator = Callable[[str, PathOperation], Optional[str]]
PathResolver = Callable[[str], Path]

SHELL_CONFIRMATION_MESSAGE = (
    "Command execution requires confirmation but no interactive session is available."
)


# ======================================================================
## Filesystem facade
# ======================================================================


class AgentFs(Protocol):
    async def read_file(self, path: str) -> Optional[str]: ...

    async def write_file(self, path: str, content: str) -> None: ...


class AgentFsImpl:
    """File access for tools, gated by the workspace path validator."""

    def __init__(self, path_validator: PathValidator, path_resolver: PathResolver) -> None:
        self.path_validator = path_validator
        # Relative paths are taken from the agent's cwd, never the process cwd
        self.path_resolver = path_resolver

    async def read_file(self, path: str) -> Optional[str]:
        """Return the file's text, or None when access is denied or reading fails."""
        resolved = str(self.path_resolver(path))
        denied = self.path_validator(resolved, "read")
        if denied is not None:
            log.debug(denied)
            return None
        try:
            async with aiofiles.open(resolved, mode="r", encoding="utf-8") as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            log.debug(f"Failed to read {resolved}: {e}")
            return None

    async def write_file(self, path: str, content: str) -> None:
        resolved = str(self.path_resolver(path))
        denied = self.path_validator(resolved, "write")
        if denied is not None:
            raise PermissionError(denied)

        os.makedirs(os.path.dirname(resolved), exist_ok=True)

        async with aiofiles.open(resolved, mode="w", encoding="utf-8") as f:
            await f.write(content)


# ======================================================================
## Shell facade
# ======================================================================


@dataclass
class ShellResult:
    exit_code: Optional[int]
    stdout: str
    stderr: str
    error: Optional[Exception] = None


class AgentShell(Protocol):
    async def exec(
        self,
        cmd: str,
        env: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> ShellResult: ...


class AgentShellImpl:
    def __init__(
        self,
        policy: ShellPolicy,
        executor: ShellExecutionService,
        default_cwd: str,
    ) -> None:
        self.policy = policy
        self.executor = executor
        self.default_cwd = default_cwd

    async def exec(
        self,
        cmd: str,
        env: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> ShellResult:
        cwd = cwd or self.default_cwd
        if not self.policy.check(cmd, cwd):
            return ShellResult(
                exit_code=1,
                stdout="",
                stderr=SHELL_CONFIRMATION_MESSAGE,
                error=PermissionError("Command blocked by policy"),
            )

        result = await self.executor.execute(cmd, cwd, timeout=timeout, env=env)
        return ShellResult(exit_code=result.exit_code, stdout=result.output, stderr="")


# ======================================================================
## Session context
# ======================================================================


@dataclass(frozen=True)
class SessionContext:
    """What a tool sees of the running session during one round."""

    session_id: str
    cwd: str
    # Snapshot of the conversation at round start
    transcript: tuple[Content, ...]
    timestamp: str
    fs: AgentFs
    shell: AgentShell
    agent: "Agent" = field(repr=False)
