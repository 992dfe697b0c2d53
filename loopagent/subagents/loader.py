"""
Declarative sub-agent files.

A sub-agent is a markdown file with YAML frontmatter::

    ---
    name: code_reviewer
    description: Reviews a diff and reports problems.
    tools: [read_file, grep]
    model: inherit
    max_turns: 10
    timeout_mins: 3
    ---
    You are a meticulous code reviewer...

The body is the system prompt. Remote agents set ``kind: remote`` and
``agent_card_url`` and have no body.
"""

import re
from pathlib import Path
from typing import Any, Union

import frontmatter
import yaml
from pydantic import ValidationError

from loopagent.subagents.types import (
    AgentLoadError,
    AgentLoadResult,
    LocalAgentDefinition,
    ModelConfig,
    PromptConfig,
    RemoteAgentDefinition,
    RunConfig,
    ToolConfig,
)
from loopagent.utils.logger import get_logger

log = get_logger(__name__)

AGENT_FILE_SUFFIX = ".md"
EXCLUDED_PREFIX = "_"

# Sub-agents become tool names, so the same charset rules apply
_VALID_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


def _require_str(data: dict[str, Any], key: str, path: Path) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise AgentLoadError(str(path), f"missing required '{key}' field in frontmatter")
    return value.strip()


def _build_local(data: dict[str, Any], body: str, path: Path) -> LocalAgentDefinition:
    if not body.strip():
        raise AgentLoadError(str(path), "local agent has an empty system prompt")

    tools = data.get("tools")
    if tools is not None and (
        not isinstance(tools, list) or not all(isinstance(t, str) for t in tools)
    ):
        raise AgentLoadError(str(path), "'tools' must be a list of tool names")

    return LocalAgentDefinition(
        name=data["name"],
        description=data["description"],
        prompt_config=PromptConfig(
            system_prompt=body.strip(), query=data.get("query")
        ),
        model_settings=ModelConfig(
            model=data.get("model") or "inherit",
            temperature=data.get("temperature"),
        ),
        run_config=RunConfig(
            max_turns=data.get("max_turns"),
            max_time_minutes=data.get("timeout_mins"),
        ),
        tool_config=ToolConfig(tools=tools) if tools is not None else None,
    )


def parse_agent_file(
    path: str | Path,
) -> Union[LocalAgentDefinition, RemoteAgentDefinition]:
    """
    Parse one agent definition file.

    Raises:
        AgentLoadError: The file cannot be read or is not a valid definition
    """
    path = Path(path)
    try:
        post = frontmatter.load(str(path))
    except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError) as e:
        raise AgentLoadError(str(path), f"cannot parse file: {e}") from e

    data = dict(post.metadata)
    name = _require_str(data, "name", path)
    if not _VALID_NAME.match(name):
        raise AgentLoadError(
            str(path),
            f"invalid agent name {name!r}: use letters, digits, '_' or '-'",
        )
    data["name"] = name
    data["description"] = _require_str(data, "description", path)

    kind = data.get("kind", "local")
    try:
        if kind == "local":
            return _build_local(data, post.content, path)
        if kind == "remote":
            return RemoteAgentDefinition(
                name=name,
                description=data["description"],
                agent_card_url=_require_str(data, "agent_card_url", path),
            )
    except ValidationError as e:
        raise AgentLoadError(str(path), f"invalid definition: {e}") from e
    raise AgentLoadError(str(path), f"unknown agent kind {kind!r}")


def load_agents_from_directory(dir_path: str | Path) -> AgentLoadResult:
    """
    Load every ``*.md`` agent definition in ``dir_path``. Files whose name
    starts with ``_`` are skipped; a file that fails to load is reported in
    ``errors`` and does not stop the others.
    """
    result = AgentLoadResult()
    root = Path(dir_path)
    if not root.is_dir():
        log.debug(f"Agent directory {root} does not exist")
        return result

    for path in sorted(root.iterdir()):
        if (
            not path.is_file()
            or path.suffix != AGENT_FILE_SUFFIX
            or path.name.startswith(EXCLUDED_PREFIX)
        ):
            continue
        try:
            result.agents.append(parse_agent_file(path))
        except AgentLoadError as e:
            result.errors.append(e)

    return result
