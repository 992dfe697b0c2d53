import asyncio
import contextlib
import os
import re
from typing import Literal, Optional

from pydantic import BaseModel, Field

from loopagent.utils.logger import get_logger

log = get_logger(__name__)

_COMMAND_SEPARATORS = re.compile(r"&&|\|\||;|\|")


# ============== Shell Policy ==============


def split_commands(command: str) -> list[str]:
    """Split a compound command on ``&&``, ``||``, ``;`` and ``|``."""
    return [part.strip() for part in _COMMAND_SEPARATORS.split(command) if part.strip()]


def _matches_prefix(command: str, prefix: str) -> bool:
    # "git" matches "git status" but not "gitk"
    return command == prefix or command.startswith(prefix.rstrip() + " ")


class ShellPolicy(BaseModel):
    """Decides whether a shell command may run without confirmation."""

    default_decision: Literal["allow", "deny"] = Field(
        "allow", description="Decision for commands no prefix matches."
    )
    allowed: list[str] = Field(
        default_factory=list, description="Command prefixes that are always allowed."
    )
    denied: list[str] = Field(
        default_factory=list, description="Command prefixes that are always denied."
    )

    def _check_one(self, command: str) -> bool:
        if any(_matches_prefix(command, prefix) for prefix in self.denied):
            return False
        if any(_matches_prefix(command, prefix) for prefix in self.allowed):
            return True
        return self.default_decision == "allow"

    def check(self, command: str, cwd: Optional[str] = None) -> bool:
        """True when every sub-command of ``command`` is allowed."""
        parts = split_commands(command)
        if not parts:
            return self.default_decision == "allow"
        allowed = all(self._check_one(part) for part in parts)
        if not allowed:
            log.debug(f"Shell policy denied {command!r} in {cwd or os.getcwd()}")
        return allowed


# ============== Shell Execution ==============


class ShellExecutionResult(BaseModel):
    exit_code: Optional[int] = Field(
        None, description="Process exit code; None when killed by cancel or timeout."
    )
    output: str = Field("", description="Combined stdout and stderr.")
    aborted: bool = False
    timed_out: bool = False


class ShellExecutionService:
    """Runs shell commands with stderr merged into stdout."""

    def __init__(self, chunk_size: int = 4096) -> None:
        self.chunk_size = chunk_size

    async def execute(
        self,
        command: str,
        cwd: str,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
        env: Optional[dict[str, str]] = None,
    ) -> ShellExecutionResult:
        """
        Execute ``command`` in ``cwd``.

        Args:
            command: Shell command line
            cwd: Working directory
            cancel_event: Kills the process once set
            timeout: Seconds before the process is killed
            env: Extra environment variables layered over os.environ

        Returns:
            ShellExecutionResult with whatever output was produced
        """
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
            env={**os.environ, **env} if env else None,
        )

        chunks: list[bytes] = []

        async def _drain() -> None:
            assert process.stdout is not None
            while True:
                chunk = await process.stdout.read(self.chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
            await process.wait()

        drain = asyncio.ensure_future(_drain())
        waiters = {drain}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            log.info(f"Killing {command!r}: task cancelled")
            await self._kill(process, drain)
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if drain in done:
            drain.result()
            return ShellExecutionResult(
                exit_code=process.returncode,
                output=b"".join(chunks).decode("utf-8", errors="replace"),
            )

        aborted = cancel_waiter is not None and cancel_waiter in done
        log.info(f"Killing {command!r}: {'cancelled' if aborted else 'timed out'}")
        await self._kill(process, drain)

        return ShellExecutionResult(
            exit_code=None,
            output=b"".join(chunks).decode("utf-8", errors="replace"),
            aborted=aborted,
            timed_out=not aborted,
        )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process, drain: asyncio.Future) -> None:
        if process.returncode is None:
            process.kill()
        await process.wait()
        drain.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await drain
