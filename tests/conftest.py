import copy
from types import SimpleNamespace

import pytest

from agentflow.llm import to_messages
from agentflow.runtime import Runtime


class FakeChatModel:
    """
    Scripted stand-in for ChatModel.

    `script` is shared by every model the factory hands out, so one test can
    queue the replies for a whole agent loop or workflow. Each entry is a
    string or a callable taking the message list. Every message list the
    model receives is recorded in `calls`.
    """

    def __init__(self, script, calls, default="OK", temperature=0.7, model=None, max_tokens=None,
                 api_base=None, api_key=None):
        self.script = script
        self.calls = calls
        self.default = default
        self.temperature = temperature
        self.model = model or "fake-model"
        self.max_tokens = max_tokens
        self.api_base = api_base
        self.api_key = api_key

    def _next(self, messages):
        messages = copy.deepcopy(to_messages(messages))
        self.calls.append(messages)
        reply = self.script.pop(0) if self.script else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply(messages) if callable(reply) else reply

    def invoke(self, messages):
        return self._next(messages)

    def stream(self, messages):
        words = self._next(messages).split(" ")
        for i, word in enumerate(words):
            yield word if i == len(words) - 1 else word + " "

    def invoke_with_tools(self, messages, tools):
        reply = self._next(messages)
        if isinstance(reply, str):
            return SimpleNamespace(content=reply, tool_calls=None)
        return reply


class FakeLLM:
    """Factory for FakeChatModel; pass as `Runtime(chat_model_factory=...)`."""

    def __init__(self, *replies, default="OK"):
        self.script = list(replies)
        self.calls = []
        self.models = []
        self.default = default

    def __call__(self, **kwargs):
        model = FakeChatModel(self.script, self.calls, self.default, **kwargs)
        self.models.append(model)
        return model

    def queue(self, *replies):
        self.script.extend(replies)

    @property
    def prompts(self):
        """Content of the last message of every call."""
        return [call[-1]["content"] for call in self.calls]


class FakeRAG:
    """In-memory document store with word-overlap scoring."""

    def __init__(self, documents=None):
        self.collections = {}
        for doc in documents or []:
            self.collections.setdefault("documents", []).append(doc)

    def add_documents(self, documents, collection=None):
        self.collections.setdefault(collection or "documents", []).extend(documents)
        return len(documents)

    def count(self, collection=None):
        return len(self.collections.get(collection or "documents", []))

    def query(self, text, k=4, collection=None):
        words = set(text.lower().split())
        hits = []
        for doc in self.collections.get(collection or "documents", []):
            overlap = len(words & set(doc["content"].lower().split()))
            if overlap:
                hits.append({"content": doc["content"], "metadata": doc.get("metadata", {}), "score": overlap / len(words)})
        return sorted(hits, key=lambda h: h["score"], reverse=True)[:k]

    def status(self, collection=None):
        docs = self.collections.get(collection or "documents", [])
        return {
            "collectionName": collection or "documents",
            "documentCount": len(docs),
            "sampleDocuments": [{"content": d["content"][:200], "metadata": d.get("metadata", {})} for d in docs[:3]],
        }


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_rag():
    return FakeRAG()


@pytest.fixture
def runtime(fake_llm, fake_rag):
    return Runtime(chat_model_factory=fake_llm, rag=fake_rag)
