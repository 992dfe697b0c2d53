"""
Shared fixtures.
"""

import pytest

from loopagent.agent import Agent, AgentOptions
from loopagent.tests.fakes import ScriptedChatModel


@pytest.fixture(autouse=True)
def loopagent_home(tmp_path, monkeypatch):
    """Keep session records out of the real home directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("LOOPAGENT_HOME", str(home))
    return home


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def scripted_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture
def make_agent(workspace, scripted_model):
    """Build an Agent wired to ``scripted_model`` inside ``workspace``."""

    def _make(**kwargs) -> Agent:
        kwargs.setdefault("instructions", "You are a test agent.")
        kwargs.setdefault("cwd", str(workspace))
        kwargs.setdefault("chat_model", scripted_model)
        return Agent(AgentOptions(**kwargs))

    return _make
