"""
Backend chat client.

Owns the live transcript for one conversation and exposes a single streaming
call, ``send_message_stream``, which yields ``StreamEvent`` objects in
generation order:

- CONTENT: a text delta
- TOOL_CALL_REQUEST: one completed tool call request (``ToolCallRequestInfo``)
- CHAT_COMPRESSED: the history was summarized before this turn
- FINISHED: the model finished this response

The transcript is append-only during a turn. It is only replaced wholesale by
``resume_chat`` or by compression, both of which happen before a new turn
starts.
"""

import asyncio
import contextlib
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional

from langchain_core.messages import AIMessageChunk

from loopagent.errors import StreamError
from loopagent.model.content import Content, Part, to_langchain_messages
from loopagent.model.llm import DEFAULT_CONTEXT_WINDOW, ModelConfigService, llm_call
from loopagent.utils.logger import get_logger
from loopagent.utils.session import ChatRecordingService, ResumedSessionData

log = get_logger(__name__)

# Fraction of history (oldest first) that is folded into the summary
COMPRESSION_PRESERVE_FRACTION = 0.3

COMPRESSION_SYSTEM_PROMPT = (
    "You compress conversation histories. Produce a dense summary that keeps "
    "every fact, decision, file path, tool result and open task needed to "
    "continue the conversation. Do not address the user."
)


# ============================================================================
# Stream Events
# ============================================================================


class StreamEventType(str, Enum):
    CONTENT = "content"
    TOOL_CALL_REQUEST = "tool_call_request"
    CHAT_COMPRESSED = "chat_compressed"
    FINISHED = "finished"
    ERROR = "error"


@dataclass
class ToolCallRequestInfo:
    """
    A tool call requested by the model. ``args`` may still be a JSON string;
    ``args_error`` is set when they could not be decoded into an object.
    """

    call_id: str
    name: str
    args: Any = field(default_factory=dict)
    prompt_id: str = ""
    is_client_initiated: bool = False
    args_error: Optional[str] = None


@dataclass
class CompressionInfo:
    original_token_count: int = 0
    new_token_count: int = 0


@dataclass
class StreamEvent:
    type: StreamEventType
    value: Any = None


def estimate_tokens(history: list[Content]) -> int:
    """Rough token estimate (4 chars per token)."""
    chars = 0
    for content in history:
        for part in content.parts:
            chars += len(part.model_dump_json(exclude_none=True))
    return chars // 4


def decode_tool_args(args: Any) -> dict[str, Any]:
    """
    Tool arguments as a dict. JSON strings are decoded; empty arguments become {}.

    Raises:
        ValueError: The arguments are not valid JSON or not a JSON object
    """
    if isinstance(args, dict):
        return args
    if args is None or (isinstance(args, str) and not args.strip()):
        return {}
    if not isinstance(args, str):
        raise ValueError(f"expected a JSON object, got {type(args).__name__}")
    try:
        decoded = json.loads(args)
    except json.JSONDecodeError as e:
        raise ValueError(f"malformed JSON ({e.msg}): {args[:200]}") from e
    if not isinstance(decoded, dict):
        raise ValueError(f"expected a JSON object, got {args[:200]}")
    return decoded


def extract_tool_calls(events: list[StreamEvent]) -> list[ToolCallRequestInfo]:
    """Tool call requests among ``events``, in order, with decoded arguments."""
    calls: list[ToolCallRequestInfo] = []
    for event in events:
        if event.type != StreamEventType.TOOL_CALL_REQUEST:
            continue
        request: ToolCallRequestInfo = event.value
        args_error = None
        try:
            args = decode_tool_args(request.args)
        except ValueError as e:
            log.warning(f"Invalid arguments for {request.name}: {e}")
            args, args_error = {}, str(e)
        calls.append(
            ToolCallRequestInfo(
                call_id=request.call_id,
                name=request.name,
                args=args,
                prompt_id=request.prompt_id,
                is_client_initiated=request.is_client_initiated,
                args_error=args_error,
            )
        )
    return calls


def _chunk_text(chunk: AIMessageChunk) -> str:
    if isinstance(chunk.content, str):
        return chunk.content
    return "".join(
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in chunk.content
    )


_STREAM_END = object()


async def _stream_chunks(
    runnable: Any,
    messages: list[Any],
    cancel_event: Optional[asyncio.Event],
) -> AsyncIterator[AIMessageChunk]:
    """
    Chunks of ``runnable.astream(messages)``. Once ``cancel_event`` is set the
    stream ends at once, even while the backend is stalled between chunks.
    """
    if cancel_event is None:
        async for chunk in runnable.astream(messages):
            yield chunk
        return

    queue: asyncio.Queue = asyncio.Queue()

    async def _produce() -> None:
        try:
            async for chunk in runnable.astream(messages):
                await queue.put(chunk)
        except Exception as e:
            await queue.put(e)
        else:
            await queue.put(_STREAM_END)

    producer = asyncio.ensure_future(_produce())
    waiter = asyncio.ensure_future(cancel_event.wait())
    getter: Optional[asyncio.Future] = None
    try:
        while not cancel_event.is_set():
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait(
                {getter, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter not in done:
                break
            item = getter.result()
            if item is _STREAM_END:
                break
            if isinstance(item, Exception):
                raise item
            yield item
    finally:
        if getter is not None:
            getter.cancel()
        waiter.cancel()
        producer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await producer


# ============================================================================
# Chat Client
# ============================================================================


class ChatClient:
    def __init__(
        self,
        model_config_service: ModelConfigService,
        model_alias: str = ModelConfigService.MAIN_ALIAS,
        system_instruction: str = "",
        tools_provider: Optional[Callable[[], list[dict[str, Any]]]] = None,
        recorder: Optional[ChatRecordingService] = None,
        compression_threshold: Optional[float] = None,
        context_window: int = DEFAULT_CONTEXT_WINDOW,
        logger=None,
    ) -> None:
        self.model_config_service = model_config_service
        self.model_alias = model_alias
        self.system_instruction = system_instruction
        self.tools_provider = tools_provider
        self.recorder = recorder
        self.compression_threshold = compression_threshold
        self.context_window = context_window
        self.log = logger or log
        self._history: list[Content] = []

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_history(self) -> list[Content]:
        return [c.model_copy(deep=True) for c in self._history]

    def set_history(self, history: list[Content]) -> None:
        self._history = list(history)

    async def add_history(self, content: Content) -> None:
        """Append a turn without calling the model (e.g. tool results of a cancelled round)."""
        self._history.append(content)
        if self.recorder is None:
            return
        if content.role == "user" and content.function_responses():
            await self.recorder.record_tool_results(content.parts)
        elif content.role == "user":
            await self.recorder.record_user(content)
        else:
            await self.recorder.record_model(content)

    def set_system_instruction(self, text: str) -> None:
        self.system_instruction = text

    async def resume_chat(
        self,
        history: list[Content],
        resumed: Optional[ResumedSessionData] = None,
    ) -> None:
        """Re-seed the transcript from a persisted session. Tools are not replayed."""
        self.set_history(history)
        if resumed is not None and self.recorder is not None:
            self.recorder.resume(resumed)
        self.log.info(f"Resumed chat with {len(history)} turns")

    # ------------------------------------------------------------------
    # Compression
    # ------------------------------------------------------------------

    async def try_compress(self, force: bool = False) -> Optional[CompressionInfo]:
        if self.compression_threshold is None and not force:
            return None
        original = estimate_tokens(self._history)
        limit = (self.compression_threshold or 0) * self.context_window
        if not force and original < limit:
            return None

        split = self._find_compress_split()
        if split <= 0:
            return None

        to_compress = self._history[:split]
        transcript = "\n\n".join(
            f"{c.role}: {p.model_dump_json(exclude_none=True)}"
            for c in to_compress
            for p in c.parts
        )
        chat_model = self.model_config_service.create_chat_model(self.model_alias)
        summary = await llm_call(
            prompt=f"Summarize this conversation history:\n\n{transcript}",
            chat_model=chat_model,
            system_prompt=COMPRESSION_SYSTEM_PROMPT,
        )
        self._history = [
            Content(role="user", parts=[Part(text=summary)]),
            Content(
                role="model",
                parts=[Part(text="Got it. Thanks for the additional context!")],
            ),
        ] + self._history[split:]

        info = CompressionInfo(
            original_token_count=original,
            new_token_count=estimate_tokens(self._history),
        )
        self.log.info(
            f"Compressed history {info.original_token_count} -> {info.new_token_count} tokens"
        )
        if self.recorder is not None:
            await self.recorder.record_annotation(
                "info",
                f"Chat history compressed from {info.original_token_count} "
                f"to {info.new_token_count} tokens.",
            )
        return info

    def _find_compress_split(self) -> int:
        """
        Index of the first turn to keep. The kept tail starts at a plain user
        turn so function calls and their responses are never separated.
        """
        start = int(len(self._history) * (1 - COMPRESSION_PRESERVE_FRACTION))
        for index in range(start, len(self._history)):
            content = self._history[index]
            if content.role == "user" and not content.function_responses():
                return index
        return 0

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def send_message_stream(
        self,
        parts: list[Part],
        cancel_event: Optional[asyncio.Event] = None,
        prompt_id: str = "",
    ) -> AsyncIterator[StreamEvent]:
        """
        Append ``parts`` as a user turn, stream the model response and record
        it. Events are yielded in generation order.
        """
        compression = await self.try_compress()
        if compression is not None:
            yield StreamEvent(StreamEventType.CHAT_COMPRESSED, compression)

        user_content = Content(role="user", parts=list(parts))
        self._history.append(user_content)
        if self.recorder is not None:
            if user_content.function_responses():
                await self.recorder.record_tool_results(user_content.parts)
            else:
                await self.recorder.record_user(user_content)

        chat_model = self.model_config_service.create_chat_model(self.model_alias)
        tools = self.tools_provider() if self.tools_provider else []
        runnable = chat_model.bind_tools(tools) if tools else chat_model
        messages = to_langchain_messages(self._history, self.system_instruction)

        aggregate: Optional[AIMessageChunk] = None
        text_parts: list[str] = []
        try:
            async with contextlib.aclosing(
                _stream_chunks(runnable, messages, cancel_event)
            ) as chunks:
                async for chunk in chunks:
                    aggregate = chunk if aggregate is None else aggregate + chunk
                    text = _chunk_text(chunk)
                    if text:
                        text_parts.append(text)
                        yield StreamEvent(StreamEventType.CONTENT, text)
        except Exception as e:
            raise StreamError(f"Model stream failed: {e}", cause=e) from e
        if cancel_event is not None and cancel_event.is_set():
            self.log.info("Stream cancelled")

        calls = self._collect_tool_calls(aggregate, prompt_id)
        for call in calls:
            yield StreamEvent(StreamEventType.TOOL_CALL_REQUEST, call)

        model_parts: list[Part] = []
        if text_parts:
            model_parts.append(Part(text="".join(text_parts)))
        for call in calls:
            model_parts.append(
                Part.model_validate(
                    {
                        "functionCall": {
                            "id": call.call_id,
                            "name": call.name,
                            "args": call.args if isinstance(call.args, dict) else {},
                        }
                    }
                )
            )
        if model_parts:
            model_content = Content(role="model", parts=model_parts)
            self._history.append(model_content)
            if self.recorder is not None:
                await self.recorder.record_model(model_content)

        yield StreamEvent(StreamEventType.FINISHED, "STOP")

    def _collect_tool_calls(
        self, aggregate: Optional[AIMessageChunk], prompt_id: str
    ) -> list[ToolCallRequestInfo]:
        if aggregate is None:
            return []
        parsed = {tc.get("id"): tc for tc in aggregate.tool_calls}
        calls: list[ToolCallRequestInfo] = []
        for chunk in aggregate.tool_call_chunks:
            name = chunk.get("name")
            if not name:
                continue
            call_id = chunk.get("id") or f"{name}-{uuid.uuid4().hex[:12]}"
            tool_call = parsed.get(chunk.get("id"))
            args: Any = tool_call["args"] if tool_call else (chunk.get("args") or "")
            calls.append(
                ToolCallRequestInfo(
                    call_id=call_id, name=name, args=args, prompt_id=prompt_id
                )
            )
        if not calls:
            # Providers that return whole tool calls without chunk metadata
            for tc in aggregate.tool_calls:
                calls.append(
                    ToolCallRequestInfo(
                        call_id=tc.get("id") or f"{tc['name']}-{uuid.uuid4().hex[:12]}",
                        name=tc["name"],
                        args=tc.get("args", {}),
                        prompt_id=prompt_id,
                    )
                )
        return calls
