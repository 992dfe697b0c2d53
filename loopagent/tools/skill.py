"""
Skill activation tool.

This module provides:
- ACTIVATE_SKILL_TOOL_DESCRIPTION: description shown to the model
- create_activate_skill_tool: builds the ``activate_skill`` builtin tool whose
  ``name`` parameter enumerates the skills currently loaded
"""

from pathlib import Path
from typing import Any

from loopagent.skills import Skill, SkillManager
from loopagent.tools.registry import BuiltinTool
from loopagent.tools.types import ToolResult, error_result

ACTIVATE_SKILL_TOOL_NAME = "activate_skill"

# Resource listing stops here so a large skill folder cannot flood the context
MAX_RESOURCE_FILES = 50

ACTIVATE_SKILL_TOOL_DESCRIPTION: str = """
Activate a skill to get specialized instructions for a task.

## When to Use

- When the user's request matches an available skill's description
- For workflows that benefit from structured, step-by-step guidance

## When NOT to Use

- When no available skill matches the task
- If the skill is already active in this conversation

## Usage Notes

- Use the skill name exactly as listed
- Follow the returned instructions to complete the task

## Available Skills

{skills}
""".strip()


def _list_resources(skill: Skill) -> list[str]:
    base = skill.base_dir
    resources = [
        str(p.relative_to(base))
        for p in sorted(base.rglob("*"))
        if p.is_file() and p.name != Path(skill.path).name
    ]
    return resources[:MAX_RESOURCE_FILES]


def render_activated_skill(skill: Skill) -> str:
    resources = "\n".join(f"    {r}" for r in _list_resources(skill)) or "    (none)"
    return (
        f'<activated_skill name="{skill.name}">\n'
        f"  <instructions>\n{skill.instructions}\n  </instructions>\n"
        f"  <available_resources base_dir=\"{skill.base_dir}\">\n"
        f"{resources}\n"
        f"  </available_resources>\n"
        f"</activated_skill>"
    )


def create_activate_skill_tool(manager: SkillManager) -> BuiltinTool:
    """
    Build the ``activate_skill`` tool from the skills ``manager`` holds now.
    Call again after loading more skills so the schema enum stays current.
    """
    skills = manager.get_skills()
    names = [s.name for s in skills]

    async def run(args: dict[str, Any]) -> ToolResult:
        name = args.get("name")
        skill = manager.get_skill(name) if isinstance(name, str) else None
        if skill is None:
            available = ", ".join(s.name for s in manager.get_skills())
            return error_result(
                f'Skill "{name}" not found. Available skills: {available or "none"}'
            )
        return ToolResult(
            llm_content=render_activated_skill(skill),
            return_display=f"Skill **{skill.name}** activated.",
        )

    return BuiltinTool(
        name=ACTIVATE_SKILL_TOOL_NAME,
        description=ACTIVATE_SKILL_TOOL_DESCRIPTION.format(
            skills=manager.build_skill_metadata_section()
        ),
        parameters={
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "enum": names,
                    "description": "Name of the skill to activate.",
                }
            },
            "required": ["name"],
        },
        run=run,
    )
