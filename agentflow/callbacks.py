"""
Observability callbacks for agents and workflows.

Handlers are best effort: `emit` never lets a handler failure reach the
code that is being observed.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

AGENT_START = "agent_start"
AGENT_END = "agent_end"
LLM_START = "llm_start"
LLM_END = "llm_end"
ITERATION_START = "iteration_start"
ITERATION_END = "iteration_end"
TOOL_START = "tool_start"
TOOL_END = "tool_end"
ERROR = "error"
COMPLETE = "complete"

NODE_START = "node_start"
NODE_END = "node_end"
NODE_ERROR = "node_error"
WORKFLOW_START = "workflow_start"
WORKFLOW_END = "workflow_end"


class CallbackHandler:
    """Receives `{"type": ..., "timestamp": ..., **payload}` events."""

    def handle(self, event: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingCallbackHandler(CallbackHandler):
    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def handle(self, event):
        payload = {k: v for k, v in event.items() if k not in ("type", "timestamp")}
        logger.log(self.level, f"[{event['type']}] {str(payload)[:200]}")


class CollectingCallbackHandler(CallbackHandler):
    """Keeps every event; optionally forwards each one to `on_event`."""

    def __init__(self, on_event: Optional[Callable[[Dict[str, Any]], None]] = None):
        self.events: List[Dict[str, Any]] = []
        self.on_event = on_event

    def handle(self, event):
        self.events.append(event)
        if self.on_event:
            self.on_event(event)

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["type"] == event_type]


def emit(handler, event_type: str, **payload) -> None:
    """Send one event to `handler`. Accepts a CallbackHandler or a callable."""
    if handler is None:
        return
    event = {"type": event_type, "timestamp": int(time.time() * 1000), **payload}
    try:
        if isinstance(handler, CallbackHandler):
            handler.handle(event)
        else:
            handler(event)
    except Exception as e:
        logger.warning(f"Callback error on {event_type}: {e}")
