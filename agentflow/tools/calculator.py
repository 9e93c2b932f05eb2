import ast
import logging
import operator
import re

from .base import Tool

logger = logging.getLogger(__name__)

_NON_MATH = re.compile(r"[^0-9+\-*/%().\s]")


def _power(base, exponent):
    # float so oversized results raise OverflowError
    result = float(base) ** exponent
    if isinstance(result, complex):
        raise ValueError("Invalid mathematical expression")
    return result


_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: _power,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def _eval(node):
    if isinstance(node, ast.Expression):
        return _eval(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        return _BIN_OPS[type(node.op)](_eval(node.left), _eval(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval(node.operand))
    raise ValueError("Invalid mathematical expression")


def evaluate(expression: str):
    clean = _NON_MATH.sub("", expression or "").strip()
    if not clean:
        raise ValueError("Invalid mathematical expression")
    result = _eval(ast.parse(clean, mode="eval"))
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return result


def calculate(params):
    expression = str(params.get("expression", ""))
    logger.info(f"Calculator tool called: {expression}")
    try:
        result = evaluate(expression)
        return {"success": True, "expression": expression, "result": result}
    except (ValueError, SyntaxError, ZeroDivisionError, OverflowError) as e:
        logger.warning(f"Calculator error for '{expression}': {e}")
        return {
            "success": False,
            "error": str(e),
            "expression": expression,
            "message": "Invalid mathematical expression. Please check your input.",
        }


calculator_tool = Tool(
    name="calculator",
    description=(
        "Perform mathematical calculations. Use this for any math operations like addition, "
        "subtraction, multiplication, division, percentages, etc. Input should be a valid "
        "mathematical expression."
    ),
    func=calculate,
    parameters={"expression": "Mathematical expression to evaluate (e.g., '2 + 2', '15 * 7', '100 / 4')"},
)
