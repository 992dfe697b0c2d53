"""
Tests for HookRunner with real shell command hooks.
"""

import json
import sys

import pytest

from loopagent.hooks import HookConfig, HookEventName, HookMatcher, HookRunner

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses sh hooks")


def echo_hook(payload: dict) -> HookConfig:
    return HookConfig(command=f"cat > /dev/null; echo '{json.dumps(payload)}'")


def runner_for(tmp_path, event, *hooks, matcher=".*") -> HookRunner:
    return HookRunner(
        {event: [HookMatcher(matcher=matcher, hooks=list(hooks))]},
        session_id="session-1",
        cwd=str(tmp_path),
    )


class TestBeforeToolHooks:
    @pytest.mark.asyncio
    async def test_deny_decision_blocks(self, tmp_path):
        runner = runner_for(
            tmp_path,
            HookEventName.BEFORE_TOOL,
            echo_hook({"decision": "deny", "reason": "writes are frozen"}),
        )

        outcome = await runner.fire(HookEventName.BEFORE_TOOL, "write_file", {})

        assert outcome.blocked is True
        assert outcome.reason == "writes are frozen"

    @pytest.mark.asyncio
    async def test_exit_code_two_blocks_with_stderr(self, tmp_path):
        hook = HookConfig(command="cat > /dev/null; echo 'not today' >&2; exit 2")
        runner = runner_for(tmp_path, HookEventName.BEFORE_TOOL, hook)

        outcome = await runner.fire(HookEventName.BEFORE_TOOL, "shell", {})

        assert outcome.blocked is True
        assert outcome.reason == "not today"

    @pytest.mark.asyncio
    async def test_matcher_filters_tools(self, tmp_path):
        runner = runner_for(
            tmp_path,
            HookEventName.BEFORE_TOOL,
            echo_hook({"decision": "deny"}),
            matcher="^write_",
        )

        assert (await runner.fire(HookEventName.BEFORE_TOOL, "read_file", {})).blocked is False
        assert (await runner.fire(HookEventName.BEFORE_TOOL, "write_file", {})).blocked is True

    @pytest.mark.asyncio
    async def test_payload_reaches_the_hook(self, tmp_path):
        out = tmp_path / "payload.json"
        runner = runner_for(
            tmp_path, HookEventName.BEFORE_TOOL, HookConfig(command=f"cat > {out}")
        )

        await runner.fire(HookEventName.BEFORE_TOOL, "save_note", {"text": "hi"})

        payload = json.loads(out.read_text())
        assert payload["hook_event_name"] == "BeforeTool"
        assert payload["session_id"] == "session-1"
        assert payload["tool_name"] == "save_note"
        assert payload["tool_input"] == {"text": "hi"}
        assert "tool_response" not in payload


class TestAfterToolHooks:
    @pytest.mark.asyncio
    async def test_additional_context(self, tmp_path):
        runner = runner_for(
            tmp_path,
            HookEventName.AFTER_TOOL,
            echo_hook({"hookSpecificOutput": {"additionalContext": "file is generated"}}),
        )

        outcome = await runner.fire(
            HookEventName.AFTER_TOOL, "read_file", {}, tool_response={"llm_content": "x"}
        )

        assert outcome.blocked is False
        assert outcome.additional_context == ["file is generated"]


class TestHookFailures:
    @pytest.mark.asyncio
    async def test_non_json_output_is_ignored(self, tmp_path):
        runner = runner_for(
            tmp_path,
            HookEventName.BEFORE_TOOL,
            HookConfig(command="cat > /dev/null; echo not json"),
        )

        outcome = await runner.fire(HookEventName.BEFORE_TOOL, "shell", {})

        assert outcome.blocked is False
        assert outcome.additional_context == []

    @pytest.mark.asyncio
    async def test_other_exit_codes_are_ignored(self, tmp_path):
        runner = runner_for(
            tmp_path,
            HookEventName.BEFORE_TOOL,
            HookConfig(command="cat > /dev/null; exit 1"),
        )

        assert (await runner.fire(HookEventName.BEFORE_TOOL, "shell", {})).blocked is False

    def test_has_hooks(self, tmp_path):
        runner = runner_for(tmp_path, HookEventName.BEFORE_TOOL, echo_hook({}))

        assert runner.has_hooks(HookEventName.BEFORE_TOOL) is True
        assert runner.has_hooks(HookEventName.AFTER_TOOL) is False
