import json
import logging
from typing import Iterator, List, Optional

from ..memory import generate_conversation_id
from ..schemas import AgentExecutionResult
from .tool_loop import ToolCallingAgent

logger = logging.getLogger(__name__)


def _conversational_agent(runtime, tools, system_prompt, temperature, model, max_tokens, callback):
    return ToolCallingAgent(
        runtime,
        tools=tools,
        system_prompt=system_prompt,
        temperature=temperature,
        max_tokens=max_tokens,
        model=model,
        callback=callback,
        conversational=True,
    )


def execute_conversational_agent(
    runtime,
    prompt: str,
    conversation_id: Optional[str] = None,
    tools: Optional[List[str]] = None,
    system_prompt: Optional[str] = None,
    temperature: float = 0.1,
    model: Optional[str] = None,
    max_tokens: int = 2000,
    callback=None,
) -> AgentExecutionResult:
    """Run the agent with the conversation's recent history and remember the exchange."""
    conversation_id = conversation_id or generate_conversation_id()
    history = runtime.memory.load_history(conversation_id)
    logger.info(f"Conversation {conversation_id}: loaded {len(history)} previous messages")

    agent = _conversational_agent(runtime, tools, system_prompt, temperature, model, max_tokens, callback)
    result = agent.run(prompt, history)
    if result.success:
        runtime.memory.add_exchange(conversation_id, prompt, result.output)
    result.conversationId = conversation_id
    return result


def sse_event(name: str, data) -> str:
    return f"event: {name}\ndata: {json.dumps(data, default=str)}\n\n"


def stream_conversation(
    runtime,
    message: str,
    conversation_id: Optional[str] = None,
    tools: Optional[List[str]] = None,
    system_prompt: Optional[str] = None,
    temperature: float = 0.1,
    model: Optional[str] = None,
) -> Iterator[str]:
    """
    Server-sent events for one conversational turn.

    Emits `conversationId` and `status` first, then the agent's progress
    events (`iteration`, `token`, `tool_start`, `tool_result`, `tool_error`)
    and ends with exactly one `done` or `error` event.
    """
    conversation_id = conversation_id or generate_conversation_id()
    yield sse_event("conversationId", {"conversationId": conversation_id})
    yield sse_event("status", {"status": "starting"})

    try:
        history = runtime.memory.load_history(conversation_id)
        agent = _conversational_agent(runtime, tools, system_prompt, temperature, model, 2000, None)
        for event in agent.iter_run(message, history, stream=True):
            name = event.pop("event")
            if name != "done":
                yield sse_event(name, event)
                continue

            result = event["result"]
            if not result.success:
                yield sse_event("error", {"error": result.error})
                return
            runtime.memory.add_exchange(conversation_id, message, result.output)
            yield sse_event("done", {
                "output": result.output,
                "toolCalls": [c.model_dump() for c in result.toolCalls],
                "conversationId": conversation_id,
                "iterations": result.iterations,
            })
    except Exception as e:
        logger.error(f"Streaming conversation error: {e}")
        yield sse_event("error", {"error": str(e) or "Failed to process conversation"})
