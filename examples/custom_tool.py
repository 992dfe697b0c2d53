"""
Custom tool example.

The model is given a ``save_note`` tool. Notes are written inside the
workspace through the session context, so the path gate applies.
"""

from pydantic import BaseModel, Field

from loopagent import Agent, SessionContext, StreamEventType, define_tool


class SaveNoteInput(BaseModel):
    title: str = Field(..., description="Short title, used as the file name")
    text: str = Field(..., description="Note body")


@define_tool(
    name="save_note",
    description="Save a note to the notes/ directory of the workspace.",
    input_schema=SaveNoteInput,
)
async def save_note(params: SaveNoteInput, ctx: SessionContext) -> dict:
    path = f"{ctx.cwd}/notes/{params.title}.md"
    await ctx.fs.write_file(path, params.text)
    return {"saved": path, "session": ctx.session_id}


async def main():
    agent = Agent.create(
        instructions="You take notes for the user. Use save_note for every note.",
        tools=[save_note],
    )

    async for event in agent.send_stream("Note that the demo is on Friday at 3pm."):
        if event.type == StreamEventType.CONTENT:
            print(event.value, end="", flush=True)
        elif event.type == StreamEventType.TOOL_CALL_REQUEST:
            print(f"\n[tool] {event.value.name} {event.value.args}")
    print()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
