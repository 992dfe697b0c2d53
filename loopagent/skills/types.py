from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class SkillRef(BaseModel):
    """Where an agent looks for skills. Only directories are supported."""

    type: Literal["dir"] = "dir"
    path: str = Field(..., description="Directory holding one sub-directory per skill.")


def skill_dir(path: str | Path) -> SkillRef:
    """Create a reference to a directory containing skills."""
    return SkillRef(path=str(path))


class SkillMetadata(BaseModel):
    name: str = Field(..., description="The name of the skill.")
    description: str = Field(..., description="A brief description of the skill.")
    path: str | Path = Field(
        ..., description="The file absolute path to the SKILL.md file."
    )


class Skill(SkillMetadata):
    instructions: str = Field(
        ...,
        description="The full markdown content of the skill definition.",
    )

    @property
    def base_dir(self) -> Path:
        return Path(self.path).parent
