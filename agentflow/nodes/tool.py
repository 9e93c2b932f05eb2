import logging

from pocketflow import Node

from ..errors import NodeExecutionError
from ..schemas import ToolNodeConfig
from .base import BasePlatformNode

logger = logging.getLogger(__name__)


class ToolNode(BasePlatformNode, Node):
    """Call one registered tool directly, without an agent in between."""
    NODE_TYPE = "tool"
    DESCRIPTION = "Run a tool (calculator, http_request, search_web, ...)"
    CONFIG_MODEL = ToolNodeConfig
    PARAMS = {"toolName": "string", "parameters": "json"}

    def prep(self, shared):
        return {
            "tool_name": self.resolve(self.config.tool_name, shared),
            "parameters": self.resolve(self.config.parameters, shared),
        }

    def exec(self, prep_res):
        tool = self.runtime.tools.get(prep_res["tool_name"])
        if tool is None:
            raise NodeExecutionError(f"Tool '{prep_res['tool_name']}' not available", self.id)
        logger.info(f"Tool node {self.name}: {tool.name}({prep_res['parameters']})")
        return {"toolName": tool.name, "result": tool.invoke(prep_res["parameters"])}
