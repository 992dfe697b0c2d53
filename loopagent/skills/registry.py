from typing import Iterable, Optional

from loopagent.skills.types import Skill
from loopagent.utils.logger import get_logger

log = get_logger(__name__)


class SkillManager:
    """Skills known to one agent, keyed by name. Later additions override earlier ones."""

    def __init__(self) -> None:
        self._skills: dict[str, Skill] = {}

    def add_skills(self, skills: Iterable[Skill]) -> None:
        for skill in skills:
            if skill.name in self._skills:
                log.info(f"Skill {skill.name} overridden by {skill.path}")
            self._skills[skill.name] = skill

    def get_skills(self) -> list[Skill]:
        return list(self._skills.values())

    def get_skill(self, name: str) -> Optional[Skill]:
        return self._skills.get(name)

    def build_skill_metadata_section(self) -> str:
        """
        Build the skill metadata section for a system prompt.
        Only includes name and description (lightweight).
        """
        if not self._skills:
            return "No skills available."
        return "\n".join(
            f"- **{s.name}**: {s.description}" for s in self._skills.values()
        )
