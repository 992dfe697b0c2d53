import asyncio
import contextlib

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Optional, Protocol

from loopagent.hooks import HookEventName, HookRunner
from loopagent.model.client import ToolCallRequestInfo
from loopagent.model.content import Part
from loopagent.tools.registry import ScopedResolver
from loopagent.tools.types import ToolResult
from loopagent.utils.logger import get_logger

log = get_logger(__name__)


# ======================================================================
## Tool Call Types
# ======================================================================


class ToolCallStatus(str, Enum):
    EXECUTING = "executing"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class ToolCallResponseInfo:
    call_id: str
    response_parts: list[Part]
    result_display: str
    error: Optional[str] = None


@dataclass
class CompletedToolCall:
    request: ToolCallRequestInfo
    response: ToolCallResponseInfo
    status: ToolCallStatus


# ======================================================================
## Tool Scheduler Callbacks
# ======================================================================


class ToolSchedulerCallbacks(Protocol):
    """Callbacks for tool scheduler events."""

    def on_tool_call_update(
        self,
        request: ToolCallRequestInfo,
        status: ToolCallStatus,
        output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Called when a tool call changes status."""
        ...


def _function_response(request: ToolCallRequestInfo, payload: dict[str, Any]) -> Part:
    return Part.model_validate(
        {
            "functionResponse": {
                "id": request.call_id,
                "name": request.name,
                "response": payload,
            }
        }
    )


# ======================================================================
## Tool Scheduler Implementation
# ======================================================================


# Executes one batch of tool calls. Calls run concurrently; completions come
# back in request order.
class ToolScheduler:
    def __init__(
        self,
        hook_runner: Optional[HookRunner] = None,
        callbacks: Optional[ToolSchedulerCallbacks] = None,
        logger=None,
    ) -> None:
        self.hook_runner = hook_runner
        self.callbacks = callbacks
        self.log = logger or log

    async def run(
        self,
        requests: list[ToolCallRequestInfo],
        resolver: ScopedResolver,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[CompletedToolCall]:
        """
        Execute ``requests`` through ``resolver``.

        Args:
            requests: Tool calls in the order the model issued them
            resolver: Round-scoped name -> callable mapping
            cancel_event: When set, unfinished calls are cancelled and reported
                as cancelled completions

        Returns:
            One completion per request, in request order
        """
        if not requests:
            return []

        if cancel_event is not None and cancel_event.is_set():
            return [self._cancelled(request) for request in requests]

        tasks = [
            asyncio.ensure_future(self._execute(request, resolver, cancel_event))
            for request in requests
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # An unopted tool error aborts the whole batch
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _execute(
        self,
        request: ToolCallRequestInfo,
        resolver: ScopedResolver,
        cancel_event: Optional[asyncio.Event],
    ) -> CompletedToolCall:
        args = request.args if isinstance(request.args, dict) else {}

        call = resolver.get(request.name)
        if call is None:
            return self._error(request, f'Tool "{request.name}" not found in registry.')
        if request.args_error is not None:
            return self._error(
                request, f"Invalid arguments for {request.name}: {request.args_error}"
            )

        if self.hook_runner is not None and self.hook_runner.has_hooks(
            HookEventName.BEFORE_TOOL
        ):
            outcome = await self.hook_runner.fire(
                HookEventName.BEFORE_TOOL, request.name, args
            )
            if outcome.blocked:
                self.log.info(f"Tool {request.name} blocked by hook: {outcome.reason}")
                return self._error(
                    request, f"Tool execution blocked: {outcome.reason}"
                )

        self._notify(request, ToolCallStatus.EXECUTING)
        self.log.debug(f"Executing tool {request.name} ({request.call_id})")

        result = await self._await_or_cancel(call(args), cancel_event)
        if result is None:
            return self._cancelled(request)

        if self.hook_runner is not None and self.hook_runner.has_hooks(
            HookEventName.AFTER_TOOL
        ):
            outcome = await self.hook_runner.fire(
                HookEventName.AFTER_TOOL,
                request.name,
                args,
                tool_response=result.model_dump(),
            )
            if outcome.additional_context:
                result = result.model_copy(
                    update={
                        "llm_content": result.llm_content
                        + "\n\n"
                        + "\n".join(outcome.additional_context)
                    }
                )

        return self._completed(request, result)

    async def _await_or_cancel(
        self,
        pending: Awaitable[ToolResult],
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[ToolResult]:
        if cancel_event is None:
            return await pending

        task = asyncio.ensure_future(pending)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        return None

    # ------------------------------------------------------------------
    # Completion builders
    # ------------------------------------------------------------------

    def _completed(
        self, request: ToolCallRequestInfo, result: ToolResult
    ) -> CompletedToolCall:
        if result.error is not None:
            payload: dict[str, Any] = {"error": result.error}
            status = ToolCallStatus.ERROR
        else:
            payload = {"output": result.llm_content}
            status = ToolCallStatus.SUCCESS
        self._notify(request, status, output=result.return_display, error=result.error)
        return CompletedToolCall(
            request=request,
            response=ToolCallResponseInfo(
                call_id=request.call_id,
                response_parts=[_function_response(request, payload)],
                result_display=result.return_display,
                error=result.error,
            ),
            status=status,
        )

    def _error(self, request: ToolCallRequestInfo, message: str) -> CompletedToolCall:
        self._notify(request, ToolCallStatus.ERROR, error=message)
        return CompletedToolCall(
            request=request,
            response=ToolCallResponseInfo(
                call_id=request.call_id,
                response_parts=[_function_response(request, {"error": message})],
                result_display=f"Error: {message}",
                error=message,
            ),
            status=ToolCallStatus.ERROR,
        )

    def _cancelled(self, request: ToolCallRequestInfo) -> CompletedToolCall:
        message = "Tool call cancelled by user."
        self._notify(request, ToolCallStatus.CANCELLED, error=message)
        return CompletedToolCall(
            request=request,
            response=ToolCallResponseInfo(
                call_id=request.call_id,
                response_parts=[_function_response(request, {"error": message})],
                result_display=message,
                error=message,
            ),
            status=ToolCallStatus.CANCELLED,
        )

    def _notify(
        self,
        request: ToolCallRequestInfo,
        status: ToolCallStatus,
        output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        if self.callbacks is not None:
            self.callbacks.on_tool_call_update(request, status, output=output, error=error)
