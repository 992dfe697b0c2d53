"""
Command hook runner.

Each matching hook command is run through the shell with a JSON payload on
stdin::

    {"hook_event_name": "BeforeTool", "session_id": ..., "cwd": ...,
     "timestamp": ..., "tool_name": ..., "tool_input": {...},
     "tool_response": {...}}

Stdout is parsed as JSON:

- ``{"decision": "deny" | "block", "reason": "..."}`` blocks a BeforeTool call
- ``{"hookSpecificOutput": {"additionalContext": "..."}}`` appends text to the
  tool result the model sees

Exit code 2 also blocks, with stderr as the reason. Any other failure of a
hook is logged and ignored.
"""

import asyncio
import json
import re
from datetime import datetime, timezone
from typing import Any, Optional

from loopagent.hooks.types import HookConfig, HookEventName, HookOutcome, HooksConfig
from loopagent.utils.logger import get_logger

log = get_logger(__name__)

BLOCKING_DECISIONS = ("deny", "block")
BLOCKING_EXIT_CODE = 2


class HookRunner:
    def __init__(
        self,
        hooks: Optional[HooksConfig],
        session_id: str,
        cwd: str,
    ) -> None:
        self.hooks: HooksConfig = dict(hooks or {})
        self.session_id = session_id
        self.cwd = cwd

    def has_hooks(self, event: HookEventName) -> bool:
        return bool(self.hooks.get(event))

    def _matching(self, event: HookEventName, tool_name: str) -> list[HookConfig]:
        matched: list[HookConfig] = []
        for matcher in self.hooks.get(event, []):
            try:
                if re.search(matcher.matcher, tool_name):
                    matched.extend(matcher.hooks)
            except re.error as e:
                log.warning(f"Invalid hook matcher {matcher.matcher!r}: {e}")
        return matched

    async def fire(
        self,
        event: HookEventName,
        tool_name: str,
        tool_input: dict[str, Any],
        tool_response: Optional[dict[str, Any]] = None,
    ) -> HookOutcome:
        outcome = HookOutcome()
        hooks = self._matching(event, tool_name)
        if not hooks:
            return outcome

        payload = {
            "hook_event_name": event.value,
            "session_id": self.session_id,
            "cwd": self.cwd,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tool_name": tool_name,
            "tool_input": tool_input,
        }
        if tool_response is not None:
            payload["tool_response"] = tool_response
        stdin = json.dumps(payload).encode("utf-8")

        for hook in hooks:
            result = await self._run_command(hook, stdin)
            if result is None:
                continue
            exit_code, stdout, stderr = result
            if exit_code == BLOCKING_EXIT_CODE:
                outcome.blocked = True
                outcome.reason = stderr.strip() or f"Blocked by hook {hook.command}"
                break
            if exit_code != 0:
                log.warning(
                    f"Hook {hook.command} exited with {exit_code}: {stderr.strip()}"
                )
                continue
            self._apply_output(outcome, hook, stdout)
            if outcome.blocked:
                break

        return outcome

    def _apply_output(self, outcome: HookOutcome, hook: HookConfig, stdout: str) -> None:
        text = stdout.strip()
        if not text:
            return
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            log.warning(f"Hook {hook.command} printed non-JSON output, ignoring it")
            return
        if not isinstance(data, dict):
            return

        if str(data.get("decision", "")).lower() in BLOCKING_DECISIONS:
            outcome.blocked = True
            outcome.reason = data.get("reason") or f"Blocked by hook {hook.command}"

        specific = data.get("hookSpecificOutput")
        if isinstance(specific, dict) and specific.get("additionalContext"):
            outcome.additional_context.append(str(specific["additionalContext"]))

    async def _run_command(
        self, hook: HookConfig, stdin: bytes
    ) -> Optional[tuple[int, str, str]]:
        try:
            proc = await asyncio.create_subprocess_shell(
                hook.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
            )
        except OSError as e:
            log.warning(f"Failed to start hook {hook.command}: {e}")
            return None

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(stdin), timeout=hook.timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            log.warning(f"Hook {hook.command} timed out after {hook.timeout}s")
            return None

        return (
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
