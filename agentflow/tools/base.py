import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class Tool:
    """
    A callable the agents can request by name.

    `parameters` maps parameter name -> human readable description; the
    manual tool loop lists the names in its prompt and the native mode turns
    them into a JSON schema.
    """

    def __init__(
        self,
        name: str,
        description: str,
        func: Callable[[Dict[str, Any]], Any],
        parameters: Optional[Dict[str, str]] = None,
        required: Optional[List[str]] = None,
    ):
        self.name = name
        self.description = description
        self.func = func
        self.parameters = parameters or {}
        self.required = required if required is not None else list(self.parameters)

    def invoke(self, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.func(params or {})

    def signature(self) -> str:
        params = ", ".join(self.parameters) if self.parameters else "none"
        return f"  - {self.name}({params}): {self.description}"

    def openai_schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        name: {"description": desc} for name, desc in self.parameters.items()
                    },
                    "required": self.required,
                },
            },
        }

    def metadata(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool] = ()):
        self.tools: Dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self.tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self.tools.get(name)

    def get_tools(self, names: Iterable[str]) -> List[Tool]:
        """Tools for the given names, unknown names skipped."""
        found = []
        for name in names or []:
            tool = self.tools.get(name)
            if tool is None:
                logger.warning(f"Unknown tool requested: {name}")
                continue
            found.append(tool)
        return found

    def names(self) -> List[str]:
        return list(self.tools)

    def metadata(self) -> List[Dict[str, Any]]:
        return [t.metadata() for t in self.tools.values()]

    def openai_schemas(self, names: Iterable[str] = None) -> List[Dict[str, Any]]:
        tools = self.get_tools(names) if names is not None else list(self.tools.values())
        return [t.openai_schema() for t in tools]
