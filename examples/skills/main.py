"""
Skills example.

Skills live in ``skills/<name>/SKILL.md``. The agent sees their names and
descriptions through the ``activate_skill`` tool and loads the full
instructions on demand.
"""

from pathlib import Path

from loopagent import Agent, StreamEventType, skill_dir

SKILLS_DIR = Path(__file__).parent / "skills"


async def main():
    agent = Agent.create(
        instructions="You are a creative assistant. Activate a skill when one fits the task.",
        skills=[skill_dir(SKILLS_DIR)],
    )

    async for event in agent.send_stream("Write a haiku about autumn rain."):
        if event.type == StreamEventType.CONTENT:
            print(event.value, end="", flush=True)
        elif event.type == StreamEventType.TOOL_CALL_REQUEST:
            print(f"[tool] {event.value.name} {event.value.args}")
    print()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
