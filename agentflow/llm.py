import logging
from typing import Any, Dict, Iterator, List, Optional, Union

import openai

import config

logger = logging.getLogger(__name__)

Messages = Union[str, List[Dict[str, Any]]]


def to_messages(messages: Messages) -> List[Dict[str, Any]]:
    """A bare string is a single user turn."""
    if isinstance(messages, str):
        return [{"role": "user", "content": messages}]
    return list(messages)


class ChatModel:
    """
    Thin wrapper over an OpenAI compatible chat completions endpoint.

    Works with OpenAI, AI/ML API and Gemini's OpenAI-compatible endpoint;
    which one is used depends on `api_base`.
    """

    def __init__(
        self,
        api_base: str = None,
        api_key: str = None,
        model: str = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        timeout: float = None,
    ):
        self.api_base = api_base or config.LLM_BASE_URL
        self.api_key = api_key or config.LLM_API_KEY
        self.model = model or config.LLM_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout or config.LLM_TIMEOUT
        self._client = None

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(base_url=self.api_base, api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _request_kwargs(self, messages: Messages) -> Dict[str, Any]:
        kwargs = {
            "model": self.model,
            "messages": to_messages(messages),
            "temperature": self.temperature,
        }
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens
        return kwargs

    def invoke(self, messages: Messages) -> str:
        kwargs = self._request_kwargs(messages)
        logger.debug(f"Sending request to {self.api_base} with model {self.model} ({len(kwargs['messages'])} messages)")
        response = self.client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

    def stream(self, messages: Messages) -> Iterator[str]:
        kwargs = self._request_kwargs(messages)
        for chunk in self.client.chat.completions.create(stream=True, **kwargs):
            if not chunk.choices:
                continue
            token = chunk.choices[0].delta.content
            if token:
                yield token

    def invoke_with_tools(self, messages: Messages, tools: List[Dict[str, Any]]):
        """Native function calling. Returns the raw assistant message."""
        kwargs = self._request_kwargs(messages)
        if tools:
            kwargs["tools"] = tools
        response = self.client.chat.completions.create(**kwargs)
        return response.choices[0].message


def create_chat_model(
    temperature: float = 0.7,
    model: str = None,
    max_tokens: Optional[int] = None,
    api_base: str = None,
    api_key: str = None,
) -> ChatModel:
    return ChatModel(
        api_base=api_base,
        api_key=api_key,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    )


def check_connection(chat_model: ChatModel) -> Dict[str, Any]:
    try:
        reply = chat_model.invoke("Say 'Hello from AgentFlow!' in one short sentence.")
        return {"success": True, "message": "Successfully connected", "model": chat_model.model, "response": reply}
    except Exception as e:
        logger.error(f"Connection to {chat_model.api_base} failed: {e}")
        return {"success": False, "message": f"Failed to connect: {e}"}
