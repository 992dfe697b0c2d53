from loopagent.skills.types import Skill, SkillMetadata, SkillRef, skill_dir
from loopagent.skills.loader import (
    load_skill_from_path,
    load_skills_from_dir,
    parse_skill_file,
)
from loopagent.skills.registry import SkillManager

__all__ = [
    "Skill",
    "SkillMetadata",
    "SkillRef",
    "skill_dir",
    "load_skill_from_path",
    "load_skills_from_dir",
    "parse_skill_file",
    "SkillManager",
]
