import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from ..errors import AgentNotFoundError, ValidationError
from ..schemas import (
    AgentDefinition,
    AgentMessage,
    AgentRunResult,
    MultiAgentExecutionResult,
    SupervisorDecision,
    new_id,
)
from .supervisor import analyze_task
from .tool_loop import ToolCallingAgent

logger = logging.getLogger(__name__)

MODES = ("supervised", "parallel", "sequential")
BROADCAST = "broadcast"


class MessageBoard:
    """Messages agents leave for each other during one multi-agent execution."""

    def __init__(self):
        self.messages: List[AgentMessage] = []
        self._lock = threading.Lock()

    def send(self, sender: str, to: str, content: str, **metadata) -> AgentMessage:
        message = AgentMessage(sender=sender, to=to, content=content, metadata=metadata)
        with self._lock:
            self.messages.append(message)
        return message

    def broadcast(self, sender: str, content: str, **metadata) -> AgentMessage:
        return self.send(sender, BROADCAST, content, **metadata)

    def for_agent(self, agent_id: str) -> List[AgentMessage]:
        with self._lock:
            return [m for m in self.messages if m.to in (agent_id, BROADCAST) and m.sender != agent_id]


def build_agent_prompt(
    task: str,
    shared_context: Optional[Dict[str, Any]] = None,
    previous_results: Optional[Dict[str, Any]] = None,
    messages: Optional[List[AgentMessage]] = None,
) -> str:
    prompt = task
    if shared_context:
        prompt += f"\n\nShared Context:\n{json.dumps(shared_context, indent=2, default=str)}"
    if previous_results:
        prompt += f"\n\nPrevious Results:\n{json.dumps(previous_results, indent=2, default=str)}"
    if messages:
        lines = "\n".join(f"From {m.sender}: {m.content}" for m in messages)
        prompt += f"\n\nMessages:\n{lines}"
    return prompt


def aggregate_outputs(results: Dict[str, AgentRunResult]) -> str:
    return "\n\n---\n\n".join(f"[{r.agentName}]\n{r.output}" for r in results.values() if r.success)


class MultiAgentExecutor:
    def __init__(self, runtime, callback=None, max_workers: int = 8):
        self.runtime = runtime
        self.callback = callback
        self.max_workers = max_workers

    def execute(
        self,
        task: str,
        mode: str = "supervised",
        agent_ids: Optional[List[str]] = None,
        supervisor_decision: Optional[SupervisorDecision] = None,
        shared_context: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> MultiAgentExecutionResult:
        start = time.time()
        execution_id = new_id("multi-agent")
        logger.info(f"Starting multi-agent execution {execution_id} mode={mode}: {task[:100]}")

        try:
            if mode not in MODES:
                raise ValidationError(f"Invalid mode: {mode}")

            if mode == "supervised":
                if supervisor_decision is None:
                    supervisor_decision = analyze_task(
                        self.runtime, task, agent_ids, temperature=temperature, model=model
                    )
                agents = self._resolve(supervisor_decision.selectedAgents)
                if not agents:
                    raise AgentNotFoundError("No valid agents found for execution")
                run_mode = supervisor_decision.executionMode
            else:
                if not agent_ids:
                    raise ValidationError("agentIds required for parallel or sequential mode")
                agents = self._resolve(agent_ids)
                if not agents:
                    raise AgentNotFoundError("No valid agents found in agentIds")
                run_mode = mode

            logger.info(f"Agents: {', '.join(a.name for a in agents)} ({run_mode})")
            board = MessageBoard()
            if run_mode == "parallel":
                results = self._execute_parallel(agents, task, board, shared_context, temperature, model)
            else:
                breakdown = supervisor_decision.taskBreakdown if supervisor_decision else []
                results = self._execute_sequential(agents, task, board, breakdown, shared_context, temperature, model)
        except Exception as e:
            logger.error(f"Multi-agent execution {execution_id} failed: {e}")
            return MultiAgentExecutionResult(
                executionId=execution_id,
                mode=mode,
                success=False,
                supervisorDecision=supervisor_decision,
                executionTime=int((time.time() - start) * 1000),
                error=str(e) or "Unknown error",
            )

        succeeded = sum(1 for r in results.values() if r.success)
        execution_time = int((time.time() - start) * 1000)
        logger.info(f"Multi-agent execution complete in {execution_time}ms, {succeeded}/{len(agents)} agents succeeded")
        return MultiAgentExecutionResult(
            executionId=execution_id,
            mode=mode,
            success=succeeded > 0,
            results=results,
            aggregatedOutput=aggregate_outputs(results),
            supervisorDecision=supervisor_decision,
            executionTime=execution_time,
        )

    def _resolve(self, agent_ids: List[str]) -> List[AgentDefinition]:
        agents = []
        for agent_id in agent_ids:
            agent = self.runtime.agents.get(agent_id)
            if agent is None:
                logger.warning(f"Unknown agent id: {agent_id}")
                continue
            agents.append(agent)
        return agents

    def run_agent(
        self,
        agent: AgentDefinition,
        prompt: str,
        board: MessageBoard,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> AgentRunResult:
        start = time.time()
        logger.info(f"Executing agent {agent.name} ({agent.id})")
        try:
            tool_agent = ToolCallingAgent(
                self.runtime,
                tools=agent.tools,
                system_prompt=agent.systemPrompt,
                temperature=agent.temperature if temperature is None else temperature,
                max_tokens=agent.maxTokens or 2000,
                model=model or agent.model,
                callback=self.callback,
            )
            result = tool_agent.run(prompt)
        except Exception as e:
            logger.error(f"Agent {agent.id} execution failed: {e}")
            board.broadcast(agent.id, f"Error: {e}", error=True)
            return AgentRunResult(
                agentId=agent.id,
                agentName=agent.name,
                success=False,
                executionTime=int((time.time() - start) * 1000),
                error=str(e) or "Unknown error",
            )

        board.broadcast(agent.id, f"Completed task: {result.output[:100]}...", success=result.success)
        return AgentRunResult(
            agentId=agent.id,
            agentName=agent.name,
            success=result.success,
            output=result.output,
            reasoning=result.reasoning,
            toolCalls=result.toolCalls,
            executionTime=int((time.time() - start) * 1000),
            error=result.error,
        )

    def _execute_parallel(self, agents, task, board, shared_context, temperature, model):
        prompt = build_agent_prompt(task, shared_context)
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(agents))) as pool:
            futures = [pool.submit(self.run_agent, agent, prompt, board, temperature, model) for agent in agents]
            runs = [f.result() for f in futures]
        return {r.agentId: r for r in runs}

    def _execute_sequential(self, agents, task, board, breakdown, shared_context, temperature, model):
        results: Dict[str, AgentRunResult] = {}
        previous: Dict[str, Dict[str, Any]] = {}
        subtasks = {item.agent: item.subtask for item in reversed(breakdown or [])}

        for i, agent in enumerate(agents):
            prompt = build_agent_prompt(
                subtasks.get(agent.id) or task,
                shared_context,
                previous,
                board.for_agent(agent.id),
            )
            result = self.run_agent(agent, prompt, board, temperature, model)
            results[agent.id] = result
            previous[agent.id] = {"output": result.output, "success": result.success}
            if not result.success and i < len(agents) - 1:
                logger.warning(f"Agent {agent.id} failed, continuing with remaining agents")
        return results
