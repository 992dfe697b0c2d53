from pathlib import Path

import frontmatter
import yaml

from loopagent.skills.types import Skill
from loopagent.utils.logger import get_logger

log = get_logger(__name__)

SKILL_FILE_NAME = "SKILL.md"


def parse_skill_file(content: str, path: str | Path) -> Skill:
    """
    Parse a SKILL.md file content into a Skill object.
    Extracts YAML frontmatter (name, description) and the markdown body (instructions).

    Args:
        content: Raw file content
        path: Absolute path to the file (for reference)

    Returns:
        Parsed Skill object

    Raises:
        ValueError: If the frontmatter is malformed or required fields are missing
    """
    try:
        post = frontmatter.loads(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Skill at {path} has malformed frontmatter: {e}") from e
    data = post.metadata

    for key in ("name", "description"):
        if not data.get(key) or not isinstance(data.get(key), str):
            raise ValueError(
                f"Skill at {path} is missing required '{key}' field in frontmatter"
            )

    return Skill(
        name=data["name"],
        description=data["description"],
        path=Path(path).resolve(),
        instructions=post.content.strip(),
    )


def load_skill_from_path(path: str | Path) -> Skill:
    """
    Load a skill from a file path.

    Raises:
        OSError: If file cannot be read
        ValueError: If file cannot be parsed
    """
    with open(path, encoding="utf-8") as f:
        content = f.read()
    return parse_skill_file(content, path)


def load_skills_from_dir(dir_path: str | Path) -> list[Skill]:
    """
    Load every skill below ``dir_path``. A skill is a sub-directory holding a
    SKILL.md file; invalid skill files are skipped with a warning.

    Raises:
        FileNotFoundError: If ``dir_path`` is not a directory
    """
    root = Path(dir_path)
    if not root.is_dir():
        raise FileNotFoundError(f"Skill directory not found: {root}")

    skills: list[Skill] = []
    for entry in sorted(root.iterdir()):
        skill_file = entry / SKILL_FILE_NAME
        if not entry.is_dir() or not skill_file.exists():
            continue
        try:
            skills.append(load_skill_from_path(skill_file))
        except (OSError, ValueError) as e:
            log.warning(f"Skipping invalid skill {skill_file}: {e}")

    log.debug(f"Loaded {len(skills)} skill(s) from {root}")
    return skills
