import json
import logging

from pocketflow import Node

from ..schemas import TransformConfig, TriggerConfig
from .base import BasePlatformNode

logger = logging.getLogger(__name__)


class TriggerNode(BasePlatformNode, Node):
    """Entry point of the workflow. Its output is the trigger payload."""

    NODE_TYPE = "trigger"
    DESCRIPTION = "Entry point of the workflow"
    INPUTS = []
    CONFIG_MODEL = TriggerConfig
    PARAMS = {
        "triggerData": {
            "type": "json",
            "description": "Payload used when the execution supplies none",
        },
        "llmBaseUrl": {
            "type": "string",
            "description": "LLM endpoint for every node in this workflow (optional)",
        },
        "llmModel": {"type": "string", "description": "Default model for this workflow (optional)"},
        "llmApiKey": {"type": "string", "description": "API key for the endpoint above (optional)"},
    }

    def prep(self, shared):
        cfg = self.config

        # Workflow-wide LLM overrides
        if cfg.llm_base_url:
            shared["llm_base_url"] = cfg.llm_base_url
        if cfg.llm_model:
            shared["llm_model"] = cfg.llm_model
        if cfg.llm_api_key:
            shared["llm_api_key"] = cfg.llm_api_key

        return {"execution": shared.get("trigger_data"), "configured": cfg.trigger_data}

    def exec(self, prep_res):
        if prep_res["execution"] is not None:
            logger.info("Using execution trigger data")
            return prep_res["execution"]

        configured = prep_res["configured"]
        if configured:
            logger.info("Using trigger data from node config")
            if isinstance(configured, str):
                try:
                    return json.loads(configured)
                except json.JSONDecodeError:
                    return {"data": configured}
            return configured

        return {"message": "Workflow started"}

    def post(self, shared, prep_res, exec_res):
        super().post(shared, prep_res, exec_res)
        self.context(shared).setdefault("trigger", exec_res)
        return None


class TransformNode(BasePlatformNode, Node):
    """Build a value from a template over earlier node outputs."""

    NODE_TYPE = "transform"
    DESCRIPTION = "Reshape data with a {{variable}} template"
    CONFIG_MODEL = TransformConfig
    PARAMS = {
        "template": {"type": "string", "description": "Text or JSON object with {{node.field}} references"},
        "parseJson": {"type": "boolean", "default": False, "description": "Parse the resolved text as JSON"},
    }

    def prep(self, shared):
        return {"template": self.resolve(self.config.template, shared), "parse_json": self.config.parse_json}

    def exec(self, prep_res):
        value = prep_res["template"]
        if prep_res["parse_json"] and isinstance(value, str):
            value = json.loads(value)
        return {"output": value}
