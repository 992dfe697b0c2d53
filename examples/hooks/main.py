"""
Hooks example.

- ``hooks/block-tool.sh`` (BeforeTool) denies ``secret_greet``
- ``hooks/inject-context.sh`` (AfterTool) adds a notice to ``get_weather``
  results
- ``hooks/log-tool.sh`` (both) appends every call to ``hook.log``
"""

from pathlib import Path

from pydantic import BaseModel

from loopagent import (
    Agent,
    HookConfig,
    HookEventName,
    HookMatcher,
    StreamEventType,
    define_tool,
)

HOOKS_DIR = Path(__file__).parent / "hooks"


class GreetInput(BaseModel):
    name: str


class WeatherInput(BaseModel):
    city: str


async def greet(params: GreetInput, ctx) -> str:
    return f"Hello, {params.name}!"


async def secret_greet(params: GreetInput, ctx) -> str:
    return f"Psst, {params.name}!"


async def get_weather(params: WeatherInput, ctx) -> dict:
    return {"city": params.city, "forecast": "sunny", "celsius": 21}


def command(script: str) -> HookConfig:
    return HookConfig(command=f"bash {HOOKS_DIR / script}", timeout=10)


async def main():
    agent = Agent.create(
        instructions="Use your tools to answer. Report blocked tools honestly.",
        tools=[
            define_tool("greet", "Greet someone", GreetInput, action=greet),
            define_tool("secret_greet", "Greet someone secretly", GreetInput, action=secret_greet),
            define_tool("get_weather", "Weather for a city", WeatherInput, action=get_weather),
        ],
        hooks={
            HookEventName.BEFORE_TOOL: [
                HookMatcher(hooks=[command("block-tool.sh"), command("log-tool.sh")]),
            ],
            HookEventName.AFTER_TOOL: [
                HookMatcher(matcher="^get_weather$", hooks=[command("inject-context.sh")]),
                HookMatcher(hooks=[command("log-tool.sh")]),
            ],
        },
    )

    prompt = "Secretly greet Ada, then tell me the weather in Lisbon."
    async for event in agent.send_stream(prompt):
        if event.type == StreamEventType.CONTENT:
            print(event.value, end="", flush=True)
    print()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
