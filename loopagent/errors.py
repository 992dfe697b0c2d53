"""
Exception hierarchy for loopagent.

Initialization and stream failures are fatal to the ``send_stream`` call that
hit them. Tool failures are converted into model-visible results when the
tool opts in (see ``loopagent.tools.types.ToolError``).
"""

from typing import Optional


class LoopAgentError(Exception):
    """Base class for every error raised by loopagent."""


class ConfigurationError(LoopAgentError):
    """Credentials or configuration could not be resolved at initialization."""


class StreamError(LoopAgentError):
    """The model backend failed while streaming a response."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class SessionNotFoundError(LoopAgentError):
    """A session id passed for resumption has no record on disk."""

    def __init__(self, session_id: str):
        super().__init__(f"No session record found for id {session_id!r}")
        self.session_id = session_id


class A2AError(LoopAgentError):
    """A remote agent answered with a JSON-RPC error or an unusable payload."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
