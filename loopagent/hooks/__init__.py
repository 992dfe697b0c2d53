from loopagent.hooks.types import (
    HookConfig,
    HookEventName,
    HookMatcher,
    HookOutcome,
    HooksConfig,
    HookType,
)
from loopagent.hooks.runner import HookRunner

__all__ = [
    "HookConfig",
    "HookEventName",
    "HookMatcher",
    "HookOutcome",
    "HooksConfig",
    "HookType",
    "HookRunner",
]
