"""
Session resume example.

The first agent introduces a fact, the second agent resumes the same session
by id and is asked about it.
"""

from loopagent import Agent, StreamEventType


async def ask(agent: Agent, prompt: str) -> None:
    print(f"> {prompt}")
    async for event in agent.send_stream(prompt):
        if event.type == StreamEventType.CONTENT:
            print(event.value, end="", flush=True)
    print("\n")


async def main():
    instructions = "You are a helpful assistant with a good memory."

    first = Agent.create(instructions=instructions)
    await ask(first, "My favourite colour is teal. Please remember it.")
    session_id = first.get_session_id()

    sessions = await first.list_sessions()
    print(f"Recorded sessions: {[s.session_id for s in sessions]}\n")

    resumed = Agent.create(instructions=instructions, session_id=session_id)
    await ask(resumed, "What is my favourite colour?")


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
