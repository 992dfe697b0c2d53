"""
Programmatic sub-agent example.

``researcher`` runs as a nested agent with its own budget. Its system prompt
is built at call time from the tool parameters and the caller's context.
"""

from pydantic import BaseModel, Field

from loopagent import (
    Agent,
    SessionContext,
    StreamEventType,
    SubagentActivityEvent,
    define_sub_agent,
)
from loopagent.subagents import SubagentActivityType


class ResearchInput(BaseModel):
    topic: str = Field(..., description="Topic to research")


async def research_prompt(params: ResearchInput, ctx: SessionContext) -> str:
    return (
        f"You are a careful researcher working in {ctx.cwd}. "
        "Give three short, concrete facts about ${topic}."
    )


def show_activity(event: SubagentActivityEvent) -> None:
    if event.type != SubagentActivityType.THOUGHT_CHUNK:
        print(f"  [{event.agent_name}] {event.type.value} {event.data}")


researcher = define_sub_agent(
    name="researcher",
    description="Researches a topic and reports three facts.",
    input_schema=ResearchInput,
    system_prompt=research_prompt,
    query="Research ${topic}.",
    max_turns=5,
    on_activity=show_activity,
)


async def main():
    agent = Agent.create(
        instructions="Delegate research questions to the researcher tool.",
        tools=[researcher],
    )

    async for event in agent.send_stream("Tell me about the history of the bicycle."):
        if event.type == StreamEventType.CONTENT:
            print(event.value, end="", flush=True)
    print()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
