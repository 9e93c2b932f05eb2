import json
import logging
from typing import List, Optional

from ..errors import OutputParserError
from ..parsers import JSON_SPAN, parse_json
from ..schemas import SupervisorDecision, TaskAssignment
from .registry import GENERALIST_ID, SUPERVISOR_ID

logger = logging.getLogger(__name__)

EXECUTION_MODES = ("parallel", "sequential")

ANALYSIS_PROMPT = """{system_prompt}

Task to analyze: "{task}"

Available agents:
{agents_info}

Analyze this task and determine which agent(s) should handle it. Consider:
- What type of work is needed?
- Which agents are best suited?
- Should agents work in parallel or sequentially?
- How should the task be broken down?

CRITICAL: You MUST respond with ONLY valid JSON. No markdown, no code blocks, no explanations before or after. Just the raw JSON object.

Required JSON format (copy this exactly):
{{
  "selectedAgents": ["agent-id-1", "agent-id-2"],
  "reasoning": "Why these agents were selected",
  "executionMode": "sequential",
  "taskBreakdown": [
    {{"agent": "agent-id-1", "subtask": "What this agent should do"}},
    {{"agent": "agent-id-2", "subtask": "What this agent should do"}}
  ]
}}

Remember: Return ONLY the JSON object, nothing else."""


def fallback_decision(task: str) -> SupervisorDecision:
    return SupervisorDecision(
        selectedAgents=[GENERALIST_ID],
        reasoning="Supervisor analysis failed, using generalist agent as fallback",
        executionMode="sequential",
        taskBreakdown=[TaskAssignment(agent=GENERALIST_ID, subtask=task)],
    )


def _agents_info(registry, available_agents):
    if available_agents:
        lines = []
        for agent_id in available_agents:
            agent = registry.get(agent_id)
            if agent:
                lines.append(f"{agent_id}: {agent.description}")
        return "\n".join(lines)
    return "\n".join(f"{a.id}: {a.description}" for a in registry.specialists())


def _parse_decision(text: str, chat_model) -> dict:
    match = JSON_SPAN.search(text or "")
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.warning("Direct parse of supervisor response failed, trying auto-fix parser")
    else:
        logger.warning("No JSON found in supervisor response, trying auto-fix parser")
    return parse_json(text, auto_fix=True, chat_model=chat_model)


def _validate(raw: dict, registry) -> SupervisorDecision:
    selected = raw.get("selectedAgents")
    if not isinstance(selected, list):
        raise OutputParserError("Invalid supervisor decision: missing selectedAgents")

    valid = []
    for agent_id in selected:
        if registry.has(agent_id):
            valid.append(agent_id)
        else:
            logger.warning(f"Supervisor selected unknown agent: {agent_id}")
    if not valid:
        raise OutputParserError("No valid agents selected by supervisor")

    mode = raw.get("executionMode")
    breakdown = [
        TaskAssignment(agent=str(item["agent"]), subtask=str(item["subtask"]))
        for item in raw.get("taskBreakdown") or []
        if isinstance(item, dict) and item.get("agent") and item.get("subtask")
    ]
    return SupervisorDecision(
        selectedAgents=valid,
        reasoning=str(raw.get("reasoning", "")),
        executionMode=mode if mode in EXECUTION_MODES else "sequential",
        taskBreakdown=breakdown,
    )


def analyze_task(
    runtime,
    task: str,
    available_agents: Optional[List[str]] = None,
    temperature: Optional[float] = None,
    model: Optional[str] = None,
) -> SupervisorDecision:
    """
    Ask the supervisor which agents should handle `task` and how.

    Never raises: any model or parsing failure falls back to the generalist
    agent running the whole task.
    """
    supervisor = runtime.agents.get(SUPERVISOR_ID)
    if supervisor is None:
        logger.error("Supervisor agent not found in registry")
        return fallback_decision(task)

    chat_model = runtime.chat_model(
        temperature=temperature if temperature is not None else supervisor.temperature,
        model=model or supervisor.model,
    )
    prompt = ANALYSIS_PROMPT.format(
        system_prompt=supervisor.systemPrompt,
        task=task,
        agents_info=_agents_info(runtime.agents, available_agents),
    )

    logger.info(f"Supervisor analyzing task: {task[:100]}")
    try:
        response = chat_model.invoke(prompt)
        logger.debug(f"Supervisor raw response: {response[:500]}")
        decision = _validate(_parse_decision(response, chat_model), runtime.agents)
    except Exception as e:
        logger.error(f"Supervisor analysis failed, falling back to generalist agent: {e}")
        return fallback_decision(task)

    logger.info(
        f"Supervisor decision: agents={decision.selectedAgents} mode={decision.executionMode} "
        f"reasoning={decision.reasoning}"
    )
    return decision
