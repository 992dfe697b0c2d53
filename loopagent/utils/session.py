"""
Session history store.

One JSON file per session under ``<project temp dir>/chats``::

    session-<YYYY-MM-DDTHH-MM>-<session id prefix>.json

The file holds a ``ConversationRecord``. The backend chat client owns the
file while a conversation runs (``ChatRecordingService``); everything else in
this module only reads records back, either to list them or to rebuild a
replayable transcript for ``Agent`` resumption.

Model turns are stored with ``type: "gemini"`` so records stay readable by
tools that understand the original session format. ``"model"`` is accepted on
read.
"""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Optional

import aiofiles
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from loopagent.model.content import Content, Part, normalize_parts
from loopagent.utils.logger import get_logger

log = get_logger(__name__)

SESSION_FILE_PREFIX = "session-"
SESSION_FILE_SUFFIX = ".json"

MODEL_RECORD_TYPES = ("gemini", "model")
ANNOTATION_RECORD_TYPES = ("info", "warning", "error")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Record schema
# =============================================================================


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ToolCallRecord(_Record):
    id: str = Field(..., description="Call id, matches the function response id")
    name: str = Field(..., description="Tool name")
    args: dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = Field(
        default=None, description="Function response parts, once the call settled"
    )
    status: Optional[str] = Field(default=None, description="success | error")
    timestamp: Optional[str] = None


class MessageRecord(_Record):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=_now_iso)
    type: Literal["user", "gemini", "model", "info", "warning", "error"]
    content: Any = Field(default=None, description="String or list of parts")
    tool_calls: Optional[list[ToolCallRecord]] = Field(default=None, alias="toolCalls")


class ConversationRecord(_Record):
    session_id: str = Field(..., alias="sessionId")
    project_hash: Optional[str] = Field(default=None, alias="projectHash")
    start_time: str = Field(..., alias="startTime")
    last_updated: str = Field(..., alias="lastUpdated")
    messages: list[MessageRecord] = Field(default_factory=list)
    summary: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(
            self.model_dump(by_alias=True, exclude_none=True),
            ensure_ascii=False,
            indent=2,
        )


class SessionInfo(BaseModel):
    """Lightweight description of one persisted session."""

    session_id: str
    file_path: str
    start_time: str
    last_updated: str
    message_count: int
    summary: Optional[str] = None


class ResumedSessionData(BaseModel):
    conversation: ConversationRecord
    file_path: str


# =============================================================================
# Listing & loading
# =============================================================================


def _is_session_file(path: Path) -> bool:
    return (
        path.name.startswith(SESSION_FILE_PREFIX)
        and path.name.endswith(SESSION_FILE_SUFFIX)
        and path.is_file()
    )


async def _read_record(file_path: str | Path) -> ConversationRecord:
    async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
        raw = await f.read()
    return ConversationRecord.model_validate_json(raw)


async def list_sessions(chats_dir: str | Path) -> list[SessionInfo]:
    """
    List sessions in ``chats_dir``, newest first by filename.

    Records that fail to decode are skipped; a missing directory yields an
    empty list.
    """
    directory = Path(chats_dir)
    try:
        entries = [p for p in directory.iterdir() if _is_session_file(p)]
    except FileNotFoundError:
        return []

    entries.sort(key=lambda p: p.name, reverse=True)

    sessions: list[SessionInfo] = []
    for path in entries:
        try:
            record = await _read_record(path)
        except (OSError, ValueError, ValidationError) as e:
            log.debug(f"Skipping unreadable session file {path.name}: {e}")
            continue
        sessions.append(
            SessionInfo(
                session_id=record.session_id,
                file_path=str(path),
                start_time=record.start_time,
                last_updated=record.last_updated,
                message_count=len(record.messages),
                summary=record.summary,
            )
        )
    return sessions


async def load_session(file_path: str | Path) -> ResumedSessionData:
    """Decode one session file fully."""
    record = await _read_record(file_path)
    return ResumedSessionData(conversation=record, file_path=str(file_path))


# =============================================================================
# Reconstruction
# =============================================================================


def message_records_to_history(messages: list[MessageRecord]) -> list[Content]:
    """
    Rebuild a replayable transcript from persisted message records.

    Tool results recorded on a model entry become a separate user turn right
    after it. A model entry whose calls carry no results gets no response
    turn, which leaves its function calls unanswered in the rebuilt history.
    """
    history: list[Content] = []
    for msg in messages:
        if msg.type in ANNOTATION_RECORD_TYPES:
            continue

        if msg.type == "user":
            parts = normalize_parts(msg.content)
            if parts:
                history.append(Content(role="user", parts=parts))
            continue

        model_parts = normalize_parts(msg.content)
        for tc in msg.tool_calls or []:
            model_parts.append(
                Part.model_validate(
                    {"functionCall": {"id": tc.id, "name": tc.name, "args": tc.args}}
                )
            )
        if model_parts:
            history.append(Content(role="model", parts=model_parts))

        response_parts: list[Part] = []
        for tc in msg.tool_calls or []:
            if tc.result is not None:
                response_parts.extend(normalize_parts(tc.result))
        if response_parts:
            history.append(Content(role="user", parts=response_parts))

    return history


def _encode_parts(parts: list[Part]) -> Any:
    if len(parts) == 1 and set(parts[0].to_record()) == {"text"}:
        return parts[0].text
    return [p.to_record() for p in parts]


def user_record(content: Content) -> MessageRecord:
    return MessageRecord(type="user", content=_encode_parts(content.parts))


def model_record(content: Content) -> MessageRecord:
    other_parts = [p for p in content.parts if p.function_call is None]
    calls = content.function_calls()
    return MessageRecord(
        type="gemini",
        content=_encode_parts(other_parts) if other_parts else "",
        tool_calls=[
            ToolCallRecord(
                id=call.id or "",
                name=call.name,
                args=call.args,
                timestamp=_now_iso(),
            )
            for call in calls
        ]
        or None,
    )


def attach_tool_results(messages: list[MessageRecord], parts: list[Part]) -> bool:
    """
    Store function-response parts on the model entry that issued the calls.

    Returns False when no matching call was found for any part.
    """
    attached = False
    for part in parts:
        response = part.function_response
        if response is None:
            continue
        for msg in reversed(messages):
            if msg.type not in MODEL_RECORD_TYPES or not msg.tool_calls:
                continue
            match = next((tc for tc in msg.tool_calls if tc.id == response.id), None)
            if match is None:
                continue
            if match.result is None:
                match.result = []
            match.result.append(part.to_record())
            match.status = "error" if "error" in response.response else "success"
            attached = True
            break
    return attached


def history_to_message_records(history: list[Content]) -> list[MessageRecord]:
    """Encode a transcript back into the persisted message schema."""
    records: list[MessageRecord] = []
    for content in history:
        if content.role == "model":
            records.append(model_record(content))
        elif content.function_responses():
            attach_tool_results(records, content.parts)
        else:
            records.append(user_record(content))
    return records


# =============================================================================
# Recording (backend side)
# =============================================================================


class ChatRecordingService:
    """
    Writes the running conversation to its session file.

    The file is created on the first recorded message and rewritten whole
    on every update.
    """

    def __init__(
        self,
        chats_dir: str | Path,
        session_id: str,
        project_hash: Optional[str] = None,
    ) -> None:
        self.chats_dir = Path(chats_dir)
        self.session_id = session_id
        self.project_hash = project_hash
        self.file_path: Optional[Path] = None
        self.record: Optional[ConversationRecord] = None

    def resume(self, resumed: ResumedSessionData) -> None:
        """Continue writing into a previously persisted session file."""
        self.file_path = Path(resumed.file_path)
        self.record = resumed.conversation
        self.session_id = resumed.conversation.session_id

    def _ensure_record(self) -> ConversationRecord:
        if self.record is None:
            now = datetime.now(timezone.utc)
            self.record = ConversationRecord(
                session_id=self.session_id,
                project_hash=self.project_hash,
                start_time=now.isoformat(),
                last_updated=now.isoformat(),
            )
            stamp = now.strftime("%Y-%m-%dT%H-%M")
            self.file_path = (
                self.chats_dir
                / f"{SESSION_FILE_PREFIX}{stamp}-{self.session_id[:8]}{SESSION_FILE_SUFFIX}"
            )
        return self.record

    async def _write(self) -> None:
        record = self._ensure_record()
        record.last_updated = _now_iso()
        self.chats_dir.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.file_path, "w", encoding="utf-8") as f:
            await f.write(record.to_json())

    async def record_user(self, content: Content) -> None:
        self._ensure_record().messages.append(user_record(content))
        await self._write()

    async def record_model(self, content: Content) -> None:
        self._ensure_record().messages.append(model_record(content))
        await self._write()

    async def record_tool_results(self, parts: list[Part]) -> None:
        record = self._ensure_record()
        if not attach_tool_results(record.messages, parts):
            log.warning("Tool results did not match any recorded tool call")
        await self._write()

    async def record_annotation(
        self, kind: Literal["info", "warning", "error"], text: str
    ) -> None:
        self._ensure_record().messages.append(MessageRecord(type=kind, content=text))
        await self._write()
