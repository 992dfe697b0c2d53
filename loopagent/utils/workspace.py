"""
Filesystem access gate.

Every read or write done through a ``SessionContext`` first asks
``WorkspaceContext.validate_path_access``. A ``None`` answer means the path is
inside the workspace (or the project temp dir); otherwise the returned string
explains the refusal.
"""

from pathlib import Path
from typing import Iterable, Literal, Optional

PathOperation = Literal["read", "write"]


class WorkspaceContext:
    def __init__(
        self,
        root: str | Path,
        include_dirs: Iterable[str | Path] = (),
        temp_dir: Optional[str | Path] = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.directories: list[Path] = [self.root]
        self.directories.extend(Path(d).resolve() for d in include_dirs)
        if temp_dir is not None:
            self.directories.append(Path(temp_dir).resolve())

    def resolve(self, path: str | Path) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate
        return candidate.resolve()

    def is_path_within_workspace(self, path: str | Path) -> bool:
        resolved = self.resolve(path)
        return any(
            resolved == directory or directory in resolved.parents
            for directory in self.directories
        )

    def validate_path_access(
        self, path: str | Path, operation: PathOperation
    ) -> Optional[str]:
        if self.is_path_within_workspace(path):
            return None
        allowed = ", ".join(str(d) for d in self.directories)
        return (
            f"Path validation failed for {operation}: {path} is outside the "
            f"allowed workspace directories ({allowed})"
        )
