"""
Control flow nodes.

ConditionNode compares two resolved values and routes to its "true" or
"false" output.
"""
import logging

from pocketflow import Node

from ..schemas import ConditionConfig
from ..variables import to_text
from .base import BasePlatformNode

logger = logging.getLogger(__name__)


def _as_number(value: str):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def compare(left: str, operator: str, right: str) -> bool:
    if operator == "==":
        return left == right
    if operator == "!=":
        return left != right
    if operator in (">", "<"):
        a, b = _as_number(left), _as_number(right)
        if a is None or b is None:
            return False
        return a > b if operator == ">" else a < b
    if operator == "contains":
        return right in left
    return False


class ConditionNode(BasePlatformNode, Node):
    """Evaluates `leftValue <operator> rightValue` and routes to 'true' or 'false'."""
    NODE_TYPE = "condition"
    DESCRIPTION = "Branch based on a comparison (true/false)"
    INPUTS = ["default"]
    OUTPUTS = ["true", "false"]
    CONFIG_MODEL = ConditionConfig
    PARAMS = {
        "leftValue": "string",      # e.g. {{score.output}}
        "operator": {"type": "string", "enum": ["==", "!=", ">", "<", "contains"], "default": "=="},
        "rightValue": "string",
    }

    def prep(self, shared):
        cfg = self.config
        return {
            "leftValue": to_text(self.resolve(cfg.left_value, shared)),
            "operator": cfg.operator or "==",
            "rightValue": to_text(self.resolve(cfg.right_value, shared)),
        }

    def exec(self, prep_res):
        result = compare(prep_res["leftValue"], prep_res["operator"], prep_res["rightValue"])
        logger.info(f"Condition {prep_res['leftValue']} {prep_res['operator']} {prep_res['rightValue']} -> {result}")
        return {"result": result, **prep_res}

    def post(self, shared, prep_res, exec_res):
        super().post(shared, prep_res, exec_res)
        # Edge name to follow
        return "true" if exec_res["result"] else "false"
