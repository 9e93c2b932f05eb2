"""
LLM and chain nodes.

Every prompt field may reference earlier outputs with `{{node.field}}`;
chain prompts then use single-brace `{name}` placeholders for chain
variables.
"""
import logging

from pocketflow import Node

from ..chains.llm_chain import execute_llm_chain
from ..chains.router_chain import execute_router_chain
from ..chains.sequential_chain import execute_sequential_chain
from ..schemas import LLMChainNodeConfig, LLMNodeConfig, RouterChainNodeConfig, SequentialChainNodeConfig
from .base import BasePlatformNode

logger = logging.getLogger(__name__)


class LLMNode(BasePlatformNode, Node):
    """Send one prompt to an OpenAI compatible chat model."""
    NODE_TYPE = "llm"
    DESCRIPTION = "Generate text with an LLM (OpenAI compatible)"
    CONFIG_MODEL = LLMNodeConfig
    PARAMS = {
        "prompt": "string",         # can use {{trigger.topic}}
        "systemPrompt": "string",
        "temperature": "float",
        "maxTokens": "int",
        "model": "string",
        "apiBase": "string",        # e.g. http://localhost:1234/v1
        "apiKey": "string",
    }

    def prep(self, shared):
        cfg = self.config
        return {
            "prompt": self.resolve(cfg.prompt, shared),
            "system_prompt": self.resolve(cfg.system_prompt, shared),
            "temperature": 0.7 if cfg.temperature is None else cfg.temperature,
            "max_tokens": cfg.max_tokens,
            **self.llm_settings(shared, cfg.model, cfg.api_base, cfg.api_key),
        }

    def exec(self, prep_res):
        prompt = prep_res["prompt"]
        logger.info(f"LLM node {self.name} prompt: {prompt}")

        messages = []
        if prep_res["system_prompt"]:
            messages.append({"role": "system", "content": prep_res["system_prompt"]})
        messages.append({"role": "user", "content": prompt})

        chat_model = self.runtime.chat_model(
            temperature=prep_res["temperature"],
            model=prep_res["model"],
            max_tokens=prep_res["max_tokens"],
            api_base=prep_res["api_base"],
            api_key=prep_res["api_key"],
        )
        output = chat_model.invoke(messages)
        logger.info(f"LLM node {self.name} response: {output[:100]}")
        return {"output": output, "prompt": prompt}


class LLMChainNode(BasePlatformNode, Node):
    NODE_TYPE = "llm_chain"
    DESCRIPTION = "Prompt template with {variables} filled before one model call"
    CONFIG_MODEL = LLMChainNodeConfig
    PARAMS = {"prompt": "string", "variables": "json", "temperature": "float", "modelName": "string", "maxTokens": "int"}

    def prep(self, shared):
        cfg = self.config
        return {
            "prompt": self.resolve(cfg.prompt, shared),
            "variables": self.resolve(cfg.variables, shared),
            "temperature": cfg.temperature,
            "model": cfg.model_name or shared.get("llm_model"),
            "max_tokens": cfg.max_tokens,
        }

    def exec(self, prep_res):
        return execute_llm_chain(self.runtime, **prep_res)


class SequentialChainNode(BasePlatformNode, Node):
    NODE_TYPE = "sequential_chain"
    DESCRIPTION = "Run prompt steps in order, each output feeding the next"
    CONFIG_MODEL = SequentialChainNodeConfig
    PARAMS = {"steps": "json", "initialInput": "json", "temperature": "float", "modelName": "string"}

    def prep(self, shared):
        cfg = self.config
        return {
            "steps": self.resolve(cfg.steps, shared),
            "initial_input": self.resolve(cfg.initial_input, shared),
            "temperature": cfg.temperature,
            "model": cfg.model_name or shared.get("llm_model"),
        }

    def exec(self, prep_res):
        return execute_sequential_chain(self.runtime, **prep_res)


class RouterChainNode(BasePlatformNode, Node):
    NODE_TYPE = "router_chain"
    DESCRIPTION = "Let the model pick a destination chain for the input"
    CONFIG_MODEL = RouterChainNodeConfig
    PARAMS = {
        "routingPrompt": "string",
        "destinations": "json",     # [{name, description, chainType, chainConfig}]
        "defaultDestination": "string",
        "input": "json",
        "temperature": "float",
        "modelName": "string",
    }

    def prep(self, shared):
        cfg = self.config
        return {
            "routing_prompt": self.resolve(cfg.routing_prompt, shared),
            "destinations": self.resolve(cfg.destinations, shared),
            "input": self.resolve(cfg.input, shared),
            "default_destination": cfg.default_destination,
            "temperature": cfg.temperature,
            "model": cfg.model_name or shared.get("llm_model"),
        }

    def exec(self, prep_res):
        return execute_router_chain(self.runtime, **prep_res)
