from loopagent import Agent, StreamEventType


async def main():
    agent = Agent.create(
        instructions="You are a friendly assistant. Keep responses short.",
    )

    print("loopagent basic example\n")

    # send_stream() returns an async generator that yields backend events
    async for event in agent.send_stream("Say hello"):
        if event.type == StreamEventType.CONTENT:
            print(event.value, end="", flush=True)
    print()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
