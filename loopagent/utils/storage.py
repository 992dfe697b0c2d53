"""
Project-scoped storage locations.

Session records live under ``<home>/tmp/<project hash>/chats`` where the
project hash is the SHA-256 of the absolute project root. The home directory
defaults to ``~/.loopagent`` and can be moved with ``LOOPAGENT_HOME``.
"""

import hashlib
import os
from pathlib import Path

DEFAULT_HOME_DIRNAME = ".loopagent"


def get_home_dir() -> Path:
    override = os.getenv("LOOPAGENT_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_HOME_DIRNAME


def get_project_hash(project_root: str | Path) -> str:
    root = str(Path(project_root).resolve())
    return hashlib.sha256(root.encode("utf-8")).hexdigest()


class Storage:
    """Resolves the on-disk directories used for one project."""

    def __init__(self, project_root: str | Path) -> None:
        self.project_root: Path = Path(project_root).resolve()

    @property
    def project_hash(self) -> str:
        return get_project_hash(self.project_root)

    def get_project_temp_dir(self) -> Path:
        return get_home_dir() / "tmp" / self.project_hash

    def get_chats_dir(self) -> Path:
        return self.get_project_temp_dir() / "chats"
