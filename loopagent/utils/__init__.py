"""
Utility modules for the agent system.

- logger: Structured logging with loguru
- session: Session records on disk, listing and history reconstruction
- storage: Per-project storage locations
- workspace: Path access gate for file operations
"""

from loopagent.utils.logger import get_logger, set_log_level, LoggerManager
from loopagent.utils.session import (
    ChatRecordingService,
    ConversationRecord,
    MessageRecord,
    ResumedSessionData,
    SessionInfo,
    ToolCallRecord,
    history_to_message_records,
    list_sessions,
    load_session,
    message_records_to_history,
)
from loopagent.utils.storage import Storage
from loopagent.utils.workspace import WorkspaceContext

__all__ = [
    # Logger
    "get_logger",
    "set_log_level",
    "LoggerManager",
    # Session
    "ChatRecordingService",
    "ConversationRecord",
    "MessageRecord",
    "ResumedSessionData",
    "SessionInfo",
    "ToolCallRecord",
    "history_to_message_records",
    "list_sessions",
    "load_session",
    "message_records_to_history",
    # Storage
    "Storage",
    "WorkspaceContext",
]
