"""
File-based sub-agents.

Every ``agents/*.md`` file becomes a tool. ``_echo-upper.md`` is skipped
because of its leading underscore; rename it and set ``agent_card_url`` to a
running A2A agent to try a remote sub-agent.
"""

from pathlib import Path

from loopagent import Agent, StreamEventType, close_remote_clients, load_sub_agents

AGENTS_DIR = Path(__file__).parent / "agents"


async def main():
    agents = load_sub_agents(AGENTS_DIR)
    print(f"Loaded {len(agents)} agent(s): {', '.join(a.name for a in agents)}\n")

    agent = Agent.create(
        instructions=(
            "You are a multilingual assistant. Use the translator tool for "
            "every translation request."
        ),
        tools=agents,
    )

    try:
        async for event in agent.send_stream("Translate 'good morning' into French."):
            if event.type == StreamEventType.CONTENT:
                print(event.value, end="", flush=True)
        print()
    finally:
        await close_remote_clients()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
