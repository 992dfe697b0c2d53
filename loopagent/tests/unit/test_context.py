"""
Tests for the workspace gate and the AgentFs facade.
"""

import pytest

from loopagent.agent.context import AgentFsImpl
from loopagent.utils.workspace import WorkspaceContext


@pytest.fixture
def fs(workspace):
    ctx = WorkspaceContext(workspace)
    return AgentFsImpl(ctx.validate_path_access, ctx.resolve)


class TestWorkspaceContext:
    def test_inside_and_outside(self, workspace, tmp_path):
        ctx = WorkspaceContext(workspace)

        assert ctx.validate_path_access(workspace / "a.txt", "read") is None
        assert ctx.validate_path_access("nested/b.txt", "write") is None
        message = ctx.validate_path_access(tmp_path / "elsewhere.txt", "read")
        assert message.startswith("Path validation failed for read")

    def test_parent_traversal_is_rejected(self, workspace):
        ctx = WorkspaceContext(workspace)
        assert ctx.is_path_within_workspace("../escape.txt") is False

    def test_temp_dir_is_allowed(self, workspace, tmp_path):
        temp = tmp_path / "scratch"
        ctx = WorkspaceContext(workspace, temp_dir=temp)
        assert ctx.is_path_within_workspace(temp / "x") is True


class TestAgentFs:
    @pytest.mark.asyncio
    async def test_write_then_read(self, fs, workspace):
        path = str(workspace / "notes" / "a.txt")

        await fs.write_file(path, "hello")

        assert await fs.read_file(path) == "hello"

    @pytest.mark.asyncio
    async def test_read_outside_workspace_returns_none(self, fs, tmp_path):
        outside = tmp_path / "secret.txt"
        outside.write_text("secret")

        assert await fs.read_file(str(outside)) is None

    @pytest.mark.asyncio
    async def test_read_missing_file_returns_none(self, fs, workspace):
        assert await fs.read_file(str(workspace / "missing.txt")) is None

    @pytest.mark.asyncio
    async def test_write_outside_workspace_raises(self, fs, tmp_path):
        with pytest.raises(PermissionError, match="Path validation failed for write"):
            await fs.write_file(str(tmp_path / "out.txt"), "nope")

    @pytest.mark.asyncio
    async def test_relative_paths_use_workspace_not_process_cwd(
        self, fs, workspace, tmp_path, monkeypatch
    ):
        other = tmp_path / "other"
        other.mkdir()
        (workspace / "a.txt").write_text("workspace file")
        (other / "a.txt").write_text("outside file")
        monkeypatch.chdir(other)

        assert await fs.read_file("a.txt") == "workspace file"

        await fs.write_file("b.txt", "written")
        assert (workspace / "b.txt").read_text() == "written"
        assert not (other / "b.txt").exists()
