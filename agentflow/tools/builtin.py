from .base import ToolRegistry
from .calculator import calculator_tool
from .rag_search import make_rag_tool
from .web import http_tool, search_tool


def default_tool_registry(get_rag_service=None) -> ToolRegistry:
    registry = ToolRegistry([calculator_tool, http_tool, search_tool])
    if get_rag_service is not None:
        registry.register(make_rag_tool(get_rag_service))
    return registry
