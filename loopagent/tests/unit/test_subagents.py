"""
Tests for sub-agents.

Coverage:
- agent definition files (frontmatter parsing, directory loading)
- prompt templating
- LocalAgentExecutor termination modes
- local and remote sub-agents wrapped as tools
"""

import json
import textwrap

import httpx
import pytest
from pydantic import BaseModel, Field

from loopagent.subagents import bridge
from loopagent.subagents.bridge import define_sub_agent, load_sub_agents
from loopagent.subagents.executor import LocalAgentExecutor, template_string
from loopagent.subagents.loader import load_agents_from_directory, parse_agent_file
from loopagent.subagents.remote import (
    A2AClient,
    RemoteAgentClientFactory,
    extract_text_from_result,
)
from loopagent.subagents.types import (
    AgentLoadError,
    AgentTerminateMode,
    LocalAgentDefinition,
    PromptConfig,
    RemoteAgentDefinition,
    RunConfig,
    SubagentActivityType,
    ToolConfig,
)
from loopagent.tools.types import define_tool, invoke_tool
from loopagent.tests.fakes import text_message, tool_call_message


def write_agent(directory, filename: str, body: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / filename).write_text(textwrap.dedent(body).lstrip())


class TopicInput(BaseModel):
    topic: str = Field(..., description="What to research")


class NoopInput(BaseModel):
    pass


async def noop(params, ctx):
    return "nothing happened"


NOOP_TOOL = define_tool("noop", "Does nothing", NoopInput, action=noop)


# ======================================================================
## Definition files
# ======================================================================


class TestAgentFiles:
    def test_parse_local_agent(self, tmp_path):
        write_agent(
            tmp_path,
            "reviewer.md",
            """
            ---
            name: reviewer
            description: Reviews code.
            tools: [read_file]
            model: some/model
            temperature: 0.2
            max_turns: 4
            timeout_mins: 2
            ---
            You review ${topic}.
            """,
        )

        definition = parse_agent_file(tmp_path / "reviewer.md")

        assert isinstance(definition, LocalAgentDefinition)
        assert definition.prompt_config.system_prompt == "You review ${topic}."
        assert definition.model_settings.model == "some/model"
        assert definition.model_settings.temperature == 0.2
        assert definition.run_config.max_turns == 4
        assert definition.run_config.max_time_minutes == 2
        assert definition.tool_config.tools == ["read_file"]

    def test_parse_remote_agent(self, tmp_path):
        write_agent(
            tmp_path,
            "remote.md",
            """
            ---
            name: remote_helper
            description: Lives elsewhere.
            kind: remote
            agent_card_url: http://agents.local
            ---
            """,
        )

        definition = parse_agent_file(tmp_path / "remote.md")

        assert isinstance(definition, RemoteAgentDefinition)
        assert definition.agent_card_url == "http://agents.local"

    @pytest.mark.parametrize(
        "body, message",
        [
            ("---\ndescription: x\n---\nbody\n", "missing required 'name'"),
            ("---\nname: bad name\ndescription: x\n---\nbody\n", "invalid agent name"),
            ("---\nname: a\ndescription: x\n---\n", "empty system prompt"),
            ("---\nname: a\ndescription: x\nkind: magic\n---\nbody\n", "unknown agent kind"),
            ("---\nname: a\ndescription: x\ntools: read_file\n---\nbody\n", "'tools' must be a list"),
        ],
    )
    def test_invalid_files(self, tmp_path, body, message):
        (tmp_path / "agent.md").write_text(body)

        with pytest.raises(AgentLoadError, match=message):
            parse_agent_file(tmp_path / "agent.md")

    def test_load_directory(self, tmp_path):
        write_agent(tmp_path, "a.md", "---\nname: a\ndescription: A\n---\nDo a.\n")
        write_agent(tmp_path, "_draft.md", "---\nname: draft\ndescription: D\n---\nx\n")
        write_agent(tmp_path, "broken.md", "---\nname: broken\n---\nx\n")
        write_agent(tmp_path, "notes.txt", "not an agent")

        result = load_agents_from_directory(tmp_path)

        assert [a.name for a in result.agents] == ["a"]
        assert len(result.errors) == 1
        assert result.errors[0].file_path.endswith("broken.md")

    def test_malformed_yaml_does_not_stop_the_directory(self, tmp_path):
        write_agent(tmp_path, "bad.md", "---\nname: [unclosed\ndescription: B\n---\nx\n")
        write_agent(tmp_path, "good.md", "---\nname: good\ndescription: G\n---\nDo good.\n")

        result = load_agents_from_directory(tmp_path)

        assert [a.name for a in result.agents] == ["good"]
        assert len(result.errors) == 1
        assert "cannot parse file" in result.errors[0].message

    def test_missing_directory(self, tmp_path):
        result = load_agents_from_directory(tmp_path / "nope")
        assert result.agents == []
        assert result.errors == []


class TestTemplateString:
    def test_substitutes(self):
        assert template_string("Research ${topic} in ${lang}", {"topic": "x", "lang": 1}) == (
            "Research x in 1"
        )

    def test_missing_value(self):
        with pytest.raises(ValueError, match="topic"):
            template_string("Research ${topic}", {})


# ======================================================================
## Executor
# ======================================================================


def local_definition(**overrides) -> LocalAgentDefinition:
    options = dict(
        name="researcher",
        description="Researches",
        prompt_config=PromptConfig(system_prompt="Research ${topic}."),
    )
    options.update(overrides)
    return LocalAgentDefinition(**options)


class TestLocalAgentExecutor:
    @pytest.mark.asyncio
    async def test_text_answer_is_goal(self, make_agent, scripted_model):
        agent = make_agent()
        scripted_model.responses = [text_message("findings")]
        events = []

        executor = await LocalAgentExecutor.create(
            local_definition(), agent.create_session_context(), events.append
        )
        output = await executor.run({"topic": "owls"})

        assert output.terminate_reason == AgentTerminateMode.GOAL
        assert output.result == "findings"
        system = scripted_model.calls[0][0].content
        assert system.startswith("Research owls.")
        assert scripted_model.calls[0][1].content == "Get Started!"
        assert [e.type for e in events] == [SubagentActivityType.THOUGHT_CHUNK]

    @pytest.mark.asyncio
    async def test_complete_task_is_goal(self, make_agent, scripted_model):
        agent = make_agent(tools=[NOOP_TOOL])
        await agent._initialize()
        scripted_model.responses = [
            tool_call_message(("noop", {}, "c1")),
            tool_call_message(("complete_task", {"result": "all done"}, "c2")),
        ]
        events = []

        executor = await LocalAgentExecutor.create(
            local_definition(tool_config=ToolConfig(tools=["noop"])),
            agent.create_session_context(),
            events.append,
        )
        output = await executor.run({"topic": "owls"})

        assert output.terminate_reason == AgentTerminateMode.GOAL
        assert output.result == "all done"
        assert executor.turns == 2
        assert [e.type for e in events] == [
            SubagentActivityType.TOOL_CALL_START,
            SubagentActivityType.TOOL_CALL_END,
        ]
        assert events[1].data["output"] == "nothing happened"

    @pytest.mark.asyncio
    async def test_tool_set_excludes_itself(self, make_agent, scripted_model):
        agent = make_agent(tools=[NOOP_TOOL])
        await agent._initialize()

        executor = await LocalAgentExecutor.create(
            local_definition(), agent.create_session_context()
        )

        assert executor.tool_registry.names() == ["noop", "complete_task"]

    @pytest.mark.asyncio
    async def test_unknown_tool_is_rejected(self, make_agent):
        agent = make_agent()

        with pytest.raises(ValueError, match="unknown tool"):
            await LocalAgentExecutor.create(
                local_definition(tool_config=ToolConfig(tools=["missing"])),
                agent.create_session_context(),
            )

    @pytest.mark.asyncio
    async def test_inherit_follows_parent_model(self, make_agent):
        agent = make_agent(model="parent/model")

        await LocalAgentExecutor.create(local_definition(), agent.create_session_context())

        settings = agent.get_model_config_service().resolve("researcher-config")
        assert settings.model == "parent/model"

    @pytest.mark.asyncio
    async def test_missing_input_is_an_error(self, make_agent):
        agent = make_agent()
        executor = await LocalAgentExecutor.create(
            local_definition(), agent.create_session_context()
        )

        output = await executor.run({})

        assert output.terminate_reason == AgentTerminateMode.ERROR


# ======================================================================
## Sub-agents as tools
# ======================================================================


class TestDefineSubAgent:
    @pytest.mark.asyncio
    async def test_runs_under_the_caller(self, make_agent, scripted_model):
        agent = make_agent()
        scripted_model.responses = [text_message("owls are birds")]
        tool = define_sub_agent(
            name="researcher",
            description="Researches a topic",
            input_schema=TopicInput,
            system_prompt="Research ${topic}.",
            query="Start on ${topic}",
        )

        result = await invoke_tool(tool, {"topic": "owls"}, agent.create_session_context())

        assert result.error is None
        assert result.llm_content == "owls are birds"
        assert scripted_model.calls[0][1].content == "Start on owls"

    @pytest.mark.asyncio
    async def test_dynamic_prompt(self, make_agent, scripted_model):
        agent = make_agent()
        scripted_model.responses = [text_message("ok")]

        async def prompt(params, ctx):
            return f"Session {ctx.session_id} wants {params.topic}."

        tool = define_sub_agent(
            name="researcher",
            description="Researches a topic",
            input_schema=TopicInput,
            system_prompt=prompt,
        )
        ctx = agent.create_session_context()

        await invoke_tool(tool, {"topic": "owls"}, ctx)

        system = scripted_model.calls[0][0].content
        assert system.startswith(f"Session {ctx.session_id} wants owls.")

    @pytest.mark.asyncio
    async def test_max_turns_is_reported_to_the_model(self, make_agent, scripted_model):
        agent = make_agent(tools=[NOOP_TOOL])
        await agent._initialize()
        scripted_model.responses = [
            tool_call_message(("noop", {}, "c1")),
            tool_call_message(("noop", {}, "c2")),
        ]
        tool = define_sub_agent(
            name="looper",
            description="Never finishes",
            input_schema=TopicInput,
            system_prompt="Loop on ${topic}.",
            tools=["noop"],
            max_turns=2,
        )

        result = await invoke_tool(tool, {"topic": "x"}, agent.create_session_context())

        assert result.error == 'Sub-agent "looper" terminated: MAX_TURNS'


def a2a_transport(result: dict, seen: list) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            assert request.url.path == "/.well-known/agent-card.json"
            return httpx.Response(200, json={"name": "remote", "url": "http://agents.local/rpc"})
        body = json.loads(request.content)
        seen.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    return httpx.MockTransport(handler)


@pytest.fixture
def remote_factory(monkeypatch):
    def _install(result: dict, seen: list) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=a2a_transport(result, seen))
        monkeypatch.setattr(bridge, "_client_factory", RemoteAgentClientFactory(client))
        return client

    return _install


class TestRemoteSubAgents:
    def test_extract_text(self):
        message = {"kind": "message", "parts": [{"kind": "text", "text": "a"}, {"kind": "text", "text": "b"}]}
        task = {"kind": "task", "status": {"message": {"parts": [{"kind": "text", "text": "t"}]}}}

        assert extract_text_from_result(message) == "a\nb"
        assert extract_text_from_result(task) == "t"
        assert extract_text_from_result({"kind": "task", "status": {"state": "completed"}}) == ""

    @pytest.mark.asyncio
    async def test_query_is_sent_as_text(self, tmp_path, make_agent, remote_factory):
        seen: list = []
        remote_factory({"kind": "message", "parts": [{"kind": "text", "text": "pong"}]}, seen)
        write_agent(
            tmp_path / "agents",
            "remote.md",
            "---\nname: remote\ndescription: R\nkind: remote\nagent_card_url: http://agents.local\n---\n",
        )
        [tool] = load_sub_agents(tmp_path / "agents")

        result = await invoke_tool(tool, {"query": "ping"}, make_agent().create_session_context())

        assert result.llm_content == "pong"
        assert seen[0]["method"] == "message/send"
        assert seen[0]["params"]["message"]["parts"] == [{"kind": "text", "text": "ping"}]

    @pytest.mark.asyncio
    async def test_other_inputs_are_sent_as_json(self, make_agent, remote_factory):
        seen: list = []
        remote_factory({"kind": "task", "status": {"state": "completed"}}, seen)
        tool = bridge.wrap_remote_agent_as_tool(
            RemoteAgentDefinition(name="remote", description="R", agent_card_url="http://agents.local"),
            TopicInput,
        )

        result = await invoke_tool(tool, {"topic": "owls"}, make_agent().create_session_context())

        assert result.llm_content == ""
        text = seen[0]["params"]["message"]["parts"][0]["text"]
        assert json.loads(text) == {"topic": "owls"}

    @pytest.mark.asyncio
    async def test_rpc_error_goes_to_the_model(self, make_agent, monkeypatch):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json={"url": "http://agents.local/rpc"})
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "busy"}}
            )

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        monkeypatch.setattr(bridge, "_client_factory", RemoteAgentClientFactory(client))
        tool = bridge.wrap_remote_agent_as_tool(
            RemoteAgentDefinition(name="remote", description="R", agent_card_url="http://agents.local"),
            bridge.QueryInput,
        )

        result = await invoke_tool(tool, {"query": "hi"}, make_agent().create_session_context())

        assert result.error == "busy"

    @pytest.mark.asyncio
    async def test_close_remote_clients(self, make_agent, remote_factory):
        http = remote_factory({"kind": "message", "parts": []}, [])
        tool = bridge.wrap_remote_agent_as_tool(
            RemoteAgentDefinition(name="remote", description="R", agent_card_url="http://agents.local"),
            bridge.QueryInput,
        )
        await invoke_tool(tool, {"query": "hi"}, make_agent().create_session_context())

        await bridge.close_remote_clients()

        assert http.is_closed
        assert bridge._client_factory is None

    @pytest.mark.asyncio
    async def test_client_leaves_a_shared_http_client_open(self):
        http = httpx.AsyncClient(transport=a2a_transport({}, []))
        client = A2AClient({"url": "http://agents.local/rpc"}, http_client=http)

        await client.aclose()

        assert not http.is_closed
        await http.aclose()
