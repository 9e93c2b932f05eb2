import logging

from pocketflow import Node

from ..agents.conversation import execute_conversational_agent
from ..agents.multi_agent import MultiAgentExecutor
from ..agents.tool_loop import ToolCallingAgent
from ..errors import NodeExecutionError
from ..memory import generate_conversation_id
from ..schemas import AgentNodeConfig, MultiAgentNodeConfig
from .base import BasePlatformNode

logger = logging.getLogger(__name__)


class AgentNode(BasePlatformNode, Node):
    """Tool-using agent; optionally remembers earlier turns of a conversation."""
    NODE_TYPE = "agent"
    DESCRIPTION = "AI agent that can call tools"
    CONFIG_MODEL = AgentNodeConfig
    PARAMS = {
        "prompt": "string",
        "systemPrompt": "string",
        "tools": "list",
        "temperature": "float",
        "maxTokens": "int",
        "model": "string",
        "enableMemory": "boolean",
        "conversationId": "string",
    }

    def prep(self, shared):
        cfg = self.config
        return {
            "prompt": self.resolve(cfg.prompt, shared),
            "system_prompt": self.resolve(cfg.system_prompt, shared) or None,
            "tools": list(cfg.tools),
            "temperature": 0.1 if cfg.temperature is None else cfg.temperature,
            "max_tokens": cfg.max_tokens or 2000,
            "model": cfg.model or shared.get("llm_model"),
            "enable_memory": cfg.enable_memory,
            "conversation_id": cfg.conversation_id,
        }

    def exec(self, prep_res):
        logger.info(
            f"Agent node {self.name}: '{prep_res['prompt'][:100]}' tools={prep_res['tools'] or 'none'} "
            f"memory={'on' if prep_res['enable_memory'] else 'off'}"
        )
        if prep_res["enable_memory"]:
            result = execute_conversational_agent(
                self.runtime,
                prep_res["prompt"],
                prep_res["conversation_id"] or generate_conversation_id(),
                tools=prep_res["tools"],
                system_prompt=prep_res["system_prompt"],
                temperature=prep_res["temperature"],
                model=prep_res["model"],
                max_tokens=prep_res["max_tokens"],
            )
        else:
            agent = ToolCallingAgent(
                self.runtime,
                tools=prep_res["tools"],
                system_prompt=prep_res["system_prompt"],
                temperature=prep_res["temperature"],
                max_tokens=prep_res["max_tokens"],
                model=prep_res["model"],
            )
            result = agent.run(prep_res["prompt"])

        if not result.success:
            raise NodeExecutionError(result.error or "Agent execution failed", self.id)

        output = {
            "output": result.output,
            "reasoning": result.reasoning,
            "toolCalls": [c.model_dump() for c in result.toolCalls],
            "executionTime": result.executionTime,
        }
        if prep_res["enable_memory"]:
            output["conversationId"] = result.conversationId
        return output


class MultiAgentNode(BasePlatformNode, Node):
    NODE_TYPE = "multi_agent"
    DESCRIPTION = "Team of specialist agents (supervised, parallel or sequential)"
    CONFIG_MODEL = MultiAgentNodeConfig
    PARAMS = {
        "task": "string",
        "mode": {"type": "string", "enum": ["supervised", "parallel", "sequential"], "default": "supervised"},
        "agentIds": "list",
        "sharedContext": "json",
        "temperature": "float",
        "model": "string",
    }

    def prep(self, shared):
        cfg = self.config
        return {
            "task": self.resolve(cfg.task, shared),
            "mode": cfg.mode or "supervised",
            "agent_ids": list(cfg.agent_ids),
            "shared_context": self.resolve(cfg.shared_context, shared) or None,
            "temperature": cfg.temperature,
            "model": cfg.model or shared.get("llm_model"),
        }

    def exec(self, prep_res):
        result = MultiAgentExecutor(self.runtime).execute(**prep_res)
        if not result.success:
            raise NodeExecutionError(result.error or "Multi-agent execution failed", self.id)
        return result.model_dump()
