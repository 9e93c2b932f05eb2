import logging
import re
from typing import Any, Dict, List, Optional, Type

from pocketflow import Node
from pydantic import BaseModel

from .. import callbacks as cb
from ..schemas import NodeConfigModel, WorkflowNode
from ..variables import resolve, resolve_in_object

logger = logging.getLogger(__name__)


class NodeSchema(BaseModel):
    type: str
    description: str
    inputs: List[str] = ["default"]
    outputs: List[str] = ["default"]
    params: Dict[str, Any] = {}  # param_name: type (string, int, boolean, json)


def slugify_label(label: str) -> str:
    """Context key for a node label: "Fetch Data" -> "fetch_data"."""
    return re.sub(r"\s+", "_", label.lower())


class BasePlatformNode:
    """
    Mixin adding workflow metadata and execution plumbing to PocketFlow nodes.

    Subclasses implement prep/exec; prep resolves `{{...}}` references in the
    node config against `shared["context"]`. The default `post` publishes the
    output into the context under the node id and its slugified label.
    """
    NODE_TYPE = "base"
    DESCRIPTION = "Base Node"
    INPUTS = ["default"]
    OUTPUTS = ["default"]
    PARAMS = {}
    CONFIG_MODEL: Optional[Type[NodeConfigModel]] = None

    @classmethod
    def get_schema(cls) -> NodeSchema:
        return NodeSchema(
            type=cls.NODE_TYPE,
            description=cls.DESCRIPTION,
            inputs=cls.INPUTS,
            outputs=cls.OUTPUTS,
            params=cls.PARAMS,
        )

    def setup(self, node: WorkflowNode, runtime=None, on_event=None):
        self.id = node.id
        self.name = node.label or node.id
        self.node_type = node.type
        self.raw_config = dict(node.config or {})
        self.config = self.CONFIG_MODEL.model_validate(self.raw_config) if self.CONFIG_MODEL else None
        self.runtime = runtime
        self.on_event = on_event
        self.input = None
        self.output = None
        return self

    # --- helpers for prep ---

    def context(self, shared) -> Dict[str, Any]:
        return shared.setdefault("context", {})

    def resolve(self, value, shared):
        if isinstance(value, str):
            return resolve(value, self.context(shared))
        return resolve_in_object(value, self.context(shared))

    def llm_settings(self, shared, model: Optional[str] = None, api_base: str = "", api_key: str = "") -> Dict[str, Any]:
        """Node config wins over workflow-level overrides set by the trigger; config.py fills the rest."""
        return {
            "model": model or shared.get("llm_model") or None,
            "api_base": api_base or shared.get("llm_base_url") or None,
            "api_key": api_key or shared.get("llm_api_key") or None,
        }

    # --- lifecycle ---

    def run(self, shared):
        cb.emit(self.on_event, cb.NODE_START, nodeId=self.id, nodeName=self.name, nodeType=self.NODE_TYPE)
        try:
            action = self._run(shared)
        except Exception as e:
            cb.emit(self.on_event, cb.NODE_ERROR, nodeId=self.id, nodeName=self.name, error=str(e))
            raise
        cb.emit(self.on_event, cb.NODE_END, nodeId=self.id, nodeName=self.name, output=self.output)
        return action

    def post(self, shared, prep_res, exec_res):
        self.input = prep_res
        self.output = exec_res
        context = self.context(shared)
        context[self.id] = exec_res
        context[slugify_label(self.name)] = exec_res
        logger.debug(f"Stored output of {self.name} under '{self.id}' and '{slugify_label(self.name)}'")
        return None


class PlaceholderNode(BasePlatformNode, Node):
    """Stands in for node types this backend does not implement."""
    NODE_TYPE = "placeholder"
    DESCRIPTION = "Unimplemented node type"

    def prep(self, shared):
        return dict(self.raw_config)

    def exec(self, prep_res):
        logger.warning(f"Node type {self.node_type} not yet implemented")
        return {"message": f"Node type {self.node_type} not yet implemented"}
