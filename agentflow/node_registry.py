import logging
from typing import Dict, Type

from .nodes.agent import AgentNode, MultiAgentNode
from .nodes.base import BasePlatformNode, PlaceholderNode
from .nodes.control_flow import ConditionNode
from .nodes.general import TransformNode, TriggerNode
from .nodes.llm import LLMChainNode, LLMNode, RouterChainNode, SequentialChainNode
from .nodes.tool import ToolNode

logger = logging.getLogger(__name__)


class NodeRegistry:
    def __init__(self):
        self.node_classes: Dict[str, Type[BasePlatformNode]] = {}

        self.register(TriggerNode)
        self.register(AgentNode)
        self.register(LLMNode)
        # Chains
        self.register(LLMChainNode)
        self.register(SequentialChainNode)
        self.register(RouterChainNode)
        self.register(MultiAgentNode)
        # Control flow / utility
        self.register(ConditionNode)
        self.register(ToolNode)
        self.register(TransformNode)

    def register(self, cls):
        if hasattr(cls, "NODE_TYPE"):
            self.node_classes[cls.NODE_TYPE] = cls

    def get_node_class(self, node_type: str) -> Type[BasePlatformNode]:
        """Unknown types get a placeholder so the rest of the workflow still runs."""
        cls = self.node_classes.get(node_type)
        if cls is None:
            logger.warning(f"Node type {node_type} not found, using placeholder")
            return PlaceholderNode
        return cls

    def get_all_metadata(self):
        return [cls.get_schema() for cls in self.node_classes.values()]


registry = NodeRegistry()
