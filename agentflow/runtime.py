import logging
from typing import Callable, Optional

import config

from .agents.registry import AgentRegistry
from .llm import ChatModel, create_chat_model
from .memory import MemoryStore
from .tools.base import ToolRegistry
from .tools.builtin import default_tool_registry

logger = logging.getLogger(__name__)


class Runtime:
    """
    Everything an execution needs from its surroundings: model factory,
    tools, agent definitions, conversation memory and the document store.

    The app builds one at startup; tests build their own with a fake model.
    """

    def __init__(
        self,
        chat_model_factory: Optional[Callable[..., ChatModel]] = None,
        tools: Optional[ToolRegistry] = None,
        agents: Optional[AgentRegistry] = None,
        memory: Optional[MemoryStore] = None,
        rag=None,
        settings=config,
    ):
        self.settings = settings
        self.chat_model_factory = chat_model_factory or create_chat_model
        self.tools = tools if tools is not None else default_tool_registry(lambda: self.rag)
        self.agents = agents if agents is not None else AgentRegistry()
        self.memory = memory if memory is not None else MemoryStore(
            max_sessions=settings.MEMORY_MAX_SESSIONS,
            session_timeout=settings.MEMORY_SESSION_TIMEOUT,
            window_size=settings.MEMORY_WINDOW_SIZE,
        )
        self._rag = rag
        logger.info(f"Runtime ready, tools: {', '.join(self.tools.names())}")

    @property
    def rag(self):
        if self._rag is None:
            from .rag import RAGService

            logger.info(f"Opening document store at {self.settings.CHROMA_PATH}")
            self._rag = RAGService(chroma_path=self.settings.CHROMA_PATH)
        return self._rag

    def chat_model(
        self,
        temperature: float = 0.7,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        return self.chat_model_factory(
            temperature=temperature,
            model=model,
            max_tokens=max_tokens,
            api_base=api_base,
            api_key=api_key,
        )
