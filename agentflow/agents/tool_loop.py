"""
Tool-calling agent loop.

Models without structured function calling are driven with text markers:

    USE_TOOL: calculator
    PARAMETERS: {"expression": "45 * 23"}

    FINAL_ANSWER: 1035

The loop executes each requested tool, feeds the result back as a new user
turn and stops on a final answer or after `max_iterations` model calls.
With `native=True` the provider's `tools=` function calling is used instead
and the markers are never parsed.

`iter_run` yields progress events (`iteration`, `status`, `token`,
`tool_start`, `tool_result`, `tool_error`) and finishes with a `done` event
carrying the AgentExecutionResult; `run` just drains it.
"""
import json
import logging
import re
import time
from typing import Any, Dict, Iterator, List, Optional

import config

from .. import callbacks as cb
from ..errors import MaxIterationsError
from ..schemas import AgentExecutionResult, ToolCall, new_id

logger = logging.getLogger(__name__)

USE_TOOL_RE = re.compile(r"USE_TOOL:\s*(\w+)", re.IGNORECASE)
PARAMETERS_RE = re.compile(r"PARAMETERS:\s*(\{[^}]*\})", re.IGNORECASE)
FINAL_ANSWER = "FINAL_ANSWER:"

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
DEFAULT_MEMORY_SYSTEM_PROMPT = (
    "You are a helpful AI assistant with memory. You remember the conversation history "
    "and can reference previous messages."
)
MEMORY_REMINDER = (
    "Remember: You can refer to previous messages in this conversation. "
    "The user expects you to remember context."
)

TOOL_INSTRUCTIONS = """You have access to these tools:
{tools}

IMPORTANT INSTRUCTIONS:
1. When you need to use a tool, respond with EXACTLY this format:
   USE_TOOL: tool_name
   PARAMETERS: {{"param1": "value1", "param2": "value2"}}

2. I will execute the tool and give you the result
3. You can then use more tools or give a final answer
4. When you're ready to give the final answer, start with "FINAL_ANSWER: " followed by your response

Example:
If you need to calculate something, respond with:
USE_TOOL: calculator
PARAMETERS: {{"expression": "45 * 23"}}

Do NOT just describe using the tool - actually request it with the format above!"""

INVALID_PARAMETERS = "Error: Invalid parameter format. Please provide valid JSON."
FORMAT_REMINDER = (
    "Please use the exact format: USE_TOOL: tool_name and PARAMETERS: {...} "
    "or start with FINAL_ANSWER: if you're done."
)
NO_OUTPUT = "Agent completed but no output generated"


def _ms_since(start: float) -> int:
    return int((time.time() - start) * 1000)


class ToolCallingAgent:
    def __init__(
        self,
        runtime,
        tools: Optional[List[str]] = None,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        model: Optional[str] = None,
        callback=None,
        max_iterations: int = config.MAX_AGENT_ITERATIONS,
        native: Optional[bool] = None,
        conversational: bool = False,
    ):
        self.runtime = runtime
        self.tool_names = list(tools or [])
        self.tools = runtime.tools.get_tools(self.tool_names)
        self.system_prompt = system_prompt
        self.callback = callback
        self.max_iterations = max_iterations
        self.native = config.NATIVE_TOOL_CALLING if native is None else native
        self.conversational = conversational
        self.chat_model = runtime.chat_model(
            temperature=temperature if temperature is not None else 0.1,
            model=model,
            max_tokens=max_tokens or 2000,
        )

    def build_system_prompt(self) -> Optional[str]:
        default = DEFAULT_MEMORY_SYSTEM_PROMPT if self.conversational else DEFAULT_SYSTEM_PROMPT
        base = self.system_prompt or default
        sections = [base]
        if self.tools and not self.native:
            sections.append(TOOL_INSTRUCTIONS.format(tools="\n".join(t.signature() for t in self.tools)))
        if self.conversational:
            sections.append(MEMORY_REMINDER)
        elif not self.tools and not self.system_prompt:
            # A bare prompt with no tools goes to the model as is
            return None
        return "\n\n".join(sections)

    def build_messages(self, prompt: str, history: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
        messages = []
        system = self.build_system_prompt()
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(history or [])
        messages.append({"role": "user", "content": prompt})
        return messages

    # --- public entry points ---

    def run(self, prompt: str, history: Optional[List[Dict[str, Any]]] = None) -> AgentExecutionResult:
        result = None
        for event in self.iter_run(prompt, history):
            if event["event"] == "done":
                result = event["result"]
        return result

    def iter_run(
        self,
        prompt: str,
        history: Optional[List[Dict[str, Any]]] = None,
        stream: bool = False,
    ) -> Iterator[Dict[str, Any]]:
        start = time.time()
        execution_id = new_id("exec")
        self._emit(
            cb.AGENT_START,
            executionId=execution_id,
            prompt=prompt,
            tools=self.tool_names,
            config={
                "temperature": self.chat_model.temperature,
                "model": self.chat_model.model,
                "maxTokens": self.chat_model.max_tokens,
            },
        )
        logger.info(f"Agent {execution_id} started: '{prompt[:100]}' tools={self.tool_names or 'none'}")

        state = {"toolCalls": [], "reasoning": [], "iterations": 0}
        try:
            messages = self.build_messages(prompt, history)
            if not self.tools:
                output = yield from self._direct(messages, execution_id, stream)
                state["iterations"] = 1
            elif self.native:
                output = yield from self._native_loop(messages, execution_id, state, stream)
            else:
                output = yield from self._marker_loop(messages, execution_id, state, stream)
        except Exception as e:
            logger.error(f"Agent {execution_id} failed: {e}")
            self._emit(cb.ERROR, executionId=execution_id, error=str(e), errorType="execution_error")
            self._emit(
                cb.AGENT_END,
                executionId=execution_id,
                success=False,
                executionTime=_ms_since(start),
                toolCalls=len(state["toolCalls"]),
            )
            yield {
                "event": "done",
                "result": AgentExecutionResult(
                    success=False,
                    error=str(e),
                    reasoning=state["reasoning"],
                    toolCalls=state["toolCalls"],
                    executionTime=_ms_since(start),
                    iterations=state["iterations"],
                ),
            }
            return

        output = output or NO_OUTPUT
        execution_time = _ms_since(start)
        logger.info(
            f"Agent {execution_id} completed after {state['iterations']} iterations, "
            f"{len(state['toolCalls'])} tool calls: {output[:100]}"
        )
        self._emit(
            cb.AGENT_END,
            executionId=execution_id,
            success=True,
            output=output,
            executionTime=execution_time,
            toolCalls=len(state["toolCalls"]),
        )
        self._emit(
            cb.COMPLETE,
            executionId=execution_id,
            success=True,
            output=output,
            totalExecutionTime=execution_time,
            totalIterations=state["iterations"],
            totalToolCalls=len(state["toolCalls"]),
        )
        yield {
            "event": "done",
            "result": AgentExecutionResult(
                success=True,
                output=output,
                reasoning=state["reasoning"],
                toolCalls=state["toolCalls"],
                executionTime=execution_time,
                iterations=state["iterations"],
            ),
        }

    # --- loop internals ---

    def _emit(self, event_type, **payload):
        cb.emit(self.callback, event_type, **payload)

    def _call_model(self, messages, execution_id, stream, iteration=None):
        """One model round-trip. With `stream` each token is yielded as it arrives."""
        llm_start = time.time()
        self._emit(cb.LLM_START, executionId=execution_id, messages=len(messages), iteration=iteration)
        if stream:
            parts = []
            for token in self.chat_model.stream(messages):
                parts.append(token)
                yield {"event": "token", "token": token}
            content = "".join(parts)
        else:
            content = self.chat_model.invoke(messages)
        self._emit(cb.LLM_END, executionId=execution_id, response=content, duration=_ms_since(llm_start))
        return content

    def _direct(self, messages, execution_id, stream):
        if stream:
            yield {"event": "status", "status": "streaming"}
        content = yield from self._call_model(messages, execution_id, stream)
        return content

    def _run_tool(self, tool, params, execution_id, iteration, state):
        """Execute a tool. Returns (ok, result_or_error_message)."""
        tool_start = time.time()
        self._emit(cb.TOOL_START, executionId=execution_id, toolName=tool.name, parameters=params, iteration=iteration)
        logger.info(f"Tool {tool.name} called with {params}")
        try:
            result = tool.invoke(params)
        except Exception as e:
            logger.error(f"Tool {tool.name} execution error: {e}")
            self._emit(
                cb.TOOL_END,
                executionId=execution_id,
                toolName=tool.name,
                result=None,
                duration=_ms_since(tool_start),
                success=False,
            )
            self._emit(
                cb.ERROR,
                executionId=execution_id,
                error=str(e),
                errorType="tool_error",
                context={"toolName": tool.name, "parameters": params},
            )
            return False, str(e)

        state["toolCalls"].append(ToolCall(toolName=tool.name, parameters=params, result=result))
        state["reasoning"].append(f"Used {tool.name} with {json.dumps(params)}")
        self._emit(
            cb.TOOL_END,
            executionId=execution_id,
            toolName=tool.name,
            result=result,
            duration=_ms_since(tool_start),
            success=True,
        )
        return True, result

    def _next_iteration(self, execution_id, state):
        state["iterations"] += 1
        iteration = state["iterations"]
        if iteration > self.max_iterations:
            state["iterations"] = self.max_iterations
            raise MaxIterationsError(iterations=self.max_iterations)
        logger.debug(f"Iteration {iteration}/{self.max_iterations}")
        self._emit(cb.ITERATION_START, executionId=execution_id, iteration=iteration, maxIterations=self.max_iterations)
        return iteration

    def _marker_loop(self, messages, execution_id, state, stream):
        available = ", ".join(t.name for t in self.tools)
        yield {"event": "status", "status": "reasoning"}

        while True:
            iteration = self._next_iteration(execution_id, state)
            yield {"event": "iteration", "iteration": iteration, "maxIterations": self.max_iterations}

            raw = yield from self._call_model(messages, execution_id, stream, iteration)
            content = raw.strip()
            logger.debug(f"Agent response: {content[:150]}")

            if "USE_TOOL:" in content and "PARAMETERS:" in content:
                tool_match = USE_TOOL_RE.search(content)
                params_match = PARAMETERS_RE.search(content)
                if tool_match and params_match:
                    yield {"event": "status", "status": "tool_call"}
                    tool_name = tool_match.group(1).lower()
                    messages.append({"role": "assistant", "content": content})

                    try:
                        params = json.loads(params_match.group(1))
                    except json.JSONDecodeError:
                        logger.warning(f"Failed to parse parameters: {params_match.group(1)}")
                        yield {"event": "tool_error", "toolName": tool_name, "error": "Invalid parameter format"}
                        messages.append({"role": "user", "content": INVALID_PARAMETERS})
                        continue

                    tool = next((t for t in self.tools if t.name == tool_name), None)
                    if tool is None:
                        logger.warning(f"Tool not found: {tool_name}")
                        yield {"event": "tool_error", "toolName": tool_name, "error": f"Tool '{tool_name}' not available"}
                        messages.append({
                            "role": "user",
                            "content": f"Error: Tool '{tool_name}' not available. Available tools: {available}",
                        })
                        continue

                    yield {"event": "tool_start", "toolName": tool_name, "parameters": params}
                    ok, result = self._run_tool(tool, params, execution_id, iteration, state)
                    if ok:
                        yield {"event": "tool_result", "toolName": tool_name, "result": result}
                        self._emit(cb.ITERATION_END, executionId=execution_id, iteration=iteration, action="tool_call")
                        messages.append({
                            "role": "user",
                            "content": (
                                f"TOOL_RESULT: {json.dumps(result, default=str)}\n\n"
                                "You can now use another tool or give your final answer."
                            ),
                        })
                    else:
                        yield {"event": "tool_error", "toolName": tool_name, "error": result}
                        messages.append({"role": "user", "content": f"Tool execution error: {result}"})
                    continue

            if FINAL_ANSWER in content:
                self._emit(cb.ITERATION_END, executionId=execution_id, iteration=iteration, action="final_answer")
                return content.partition(FINAL_ANSWER)[2].strip()

            # The model dropped the format after a tool round: take the reply as the answer
            if iteration > 1 and "USE_TOOL" not in content:
                self._emit(cb.ITERATION_END, executionId=execution_id, iteration=iteration, action="final_answer")
                return content

            messages.append({"role": "assistant", "content": content})
            messages.append({"role": "user", "content": FORMAT_REMINDER})

    def _native_loop(self, messages, execution_id, state, stream):
        schemas = [t.openai_schema() for t in self.tools]
        by_name = {t.name: t for t in self.tools}
        yield {"event": "status", "status": "reasoning"}

        while True:
            iteration = self._next_iteration(execution_id, state)
            yield {"event": "iteration", "iteration": iteration, "maxIterations": self.max_iterations}

            llm_start = time.time()
            self._emit(cb.LLM_START, executionId=execution_id, messages=len(messages), iteration=iteration)
            message = self.chat_model.invoke_with_tools(messages, schemas)
            self._emit(cb.LLM_END, executionId=execution_id, response=message.content, duration=_ms_since(llm_start))

            tool_calls = getattr(message, "tool_calls", None) or []
            if not tool_calls:
                content = (message.content or "").strip()
                if stream and content:
                    yield {"event": "token", "token": content}
                self._emit(cb.ITERATION_END, executionId=execution_id, iteration=iteration, action="final_answer")
                return content

            yield {"event": "status", "status": "tool_call"}
            messages.append({
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments},
                    }
                    for call in tool_calls
                ],
            })
            for call in tool_calls:
                name = call.function.name
                try:
                    params = json.loads(call.function.arguments or "{}")
                except json.JSONDecodeError:
                    params = None
                tool = by_name.get(name)

                if params is None:
                    reply = INVALID_PARAMETERS
                    yield {"event": "tool_error", "toolName": name, "error": "Invalid parameter format"}
                elif tool is None:
                    reply = f"Error: Tool '{name}' not available. Available tools: {', '.join(by_name)}"
                    yield {"event": "tool_error", "toolName": name, "error": f"Tool '{name}' not available"}
                else:
                    yield {"event": "tool_start", "toolName": name, "parameters": params}
                    ok, result = self._run_tool(tool, params, execution_id, iteration, state)
                    if ok:
                        reply = json.dumps(result, default=str)
                        yield {"event": "tool_result", "toolName": name, "result": result}
                    else:
                        reply = f"Tool execution error: {result}"
                        yield {"event": "tool_error", "toolName": name, "error": result}
                messages.append({"role": "tool", "tool_call_id": call.id, "content": reply})
            self._emit(cb.ITERATION_END, executionId=execution_id, iteration=iteration, action="tool_call")


def execute_agent(runtime, prompt: str, tools=None, system_prompt=None, temperature=0.1,
                  max_tokens=2000, model=None, callback=None, native=None) -> AgentExecutionResult:
    agent = ToolCallingAgent(
        runtime,
        tools=tools,
        system_prompt=system_prompt,
        temperature=temperature,
        max_tokens=max_tokens,
        model=model,
        callback=callback,
        native=native,
    )
    return agent.run(prompt)
