"""Streaming example: a weather assistant with a confirmation step.

Demonstrates:
- Defining tools with @tool, including a UI tool answered by the user
- Streaming text with Runner.process()
- Resuming the loop after a UI pause

Usage:
    Add OPENAI_API_KEY=sk-... to .env, then:
    uv run --env-file=.env examples/weather_agent.py
"""

import asyncio
import logging
import random

from agentflow import (
    MessageEvent,
    OpenAIModel,
    OpenAISource,
    Runner,
    SystemMessage,
    TextDeltaEvent,
    ToolKind,
    ToolMessage,
    UserMessage,
    tool,
)


@tool
async def get_weather(location: str, unit: str = "celsius"):
    """Get the current weather for a city.

    Args:
        location: City name, e.g. "Paris".
        unit: "celsius" or "fahrenheit".
    """
    await asyncio.sleep(0.2)
    temp = random.randint(5, 30)
    if unit == "fahrenheit":
        temp = temp * 9 // 5 + 32
    return {"location": location, "temperature": temp, "unit": unit}


@tool(kind=ToolKind.UI)
def confirm_trip(destination: str):
    """Ask the user to confirm before booking a trip.

    Args:
        destination: Where the user wants to go.
    """


SYSTEM_PROMPT = (
    "You are a travel assistant. Check the weather with get_weather. "
    "Before booking anything, call confirm_trip and wait for the answer."
)


async def respond(runner, history, model, source, tools):
    """Stream one reply and return the UI calls left unanswered."""
    pending_ui = []
    print("Assistant: ", end="", flush=True)
    async for event in runner.process(history, model, source, tools=tools):
        if isinstance(event, TextDeltaEvent):
            print(event.content, end="", flush=True)
        elif isinstance(event, MessageEvent):
            history.append(event.message)
            if not isinstance(event.message, ToolMessage):
                pending_ui = [
                    c for c in event.message.tool_calls
                    if c.name == confirm_trip.name
                ]
    print()
    return pending_ui


async def main():
    logging.basicConfig(level=logging.WARNING)
    runner = Runner(max_concurrency=4)
    model = OpenAIModel(id="gpt-4o-mini")
    source = OpenAISource()
    tools = [get_weather, confirm_trip]
    history = [SystemMessage(content=SYSTEM_PROMPT)]

    print("Travel Assistant\n")

    while True:
        try:
            user_input = input("You: ")
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        history.append(UserMessage(content=user_input))
        pending_ui = await respond(runner, history, model, source, tools)

        while pending_ui:
            for call in pending_ui:
                answer = input(f"Confirm trip? ({call.arguments}) [y/n]: ")
                history.append(ToolMessage(
                    tool_call_id=call.id,
                    name=call.name,
                    content="confirmed" if answer.strip().lower() == "y" else "declined",
                ))
            pending_ui = await respond(runner, history, model, source, tools)


if __name__ == "__main__":
    asyncio.run(main())
