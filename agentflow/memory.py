"""
Conversation memory for agents.

Each conversation id gets a session holding its message list. Sessions
live in process memory only: idle ones expire after `session_timeout`
seconds and, past `max_sessions`, the least recently used are dropped.
"""
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List

import config

logger = logging.getLogger(__name__)


@dataclass
class ConversationSession:
    id: str
    messages: List[Dict[str, str]] = field(default_factory=list)
    createdAt: float = field(default_factory=time.time)
    lastAccessedAt: float = field(default_factory=time.time)
    messageCount: int = 0

    def summary(self, now: float) -> Dict:
        return {
            "id": self.id,
            "messageCount": self.messageCount,
            "createdAt": self.createdAt,
            "lastAccessedAt": self.lastAccessedAt,
            "age": int((now - self.createdAt) * 1000),
            "lastAccessed": int((now - self.lastAccessedAt) * 1000),
        }


class MemoryStore:
    def __init__(
        self,
        max_sessions: int = config.MEMORY_MAX_SESSIONS,
        session_timeout: float = config.MEMORY_SESSION_TIMEOUT,
        window_size: int = config.MEMORY_WINDOW_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        self.max_sessions = max_sessions
        self.session_timeout = session_timeout
        self.window_size = window_size
        self.clock = clock
        self.sessions: Dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    def get_session(self, conversation_id: str) -> ConversationSession:
        with self._lock:
            return self._session(conversation_id)

    def load_history(self, conversation_id: str) -> List[Dict[str, str]]:
        """The last `window_size` messages, oldest first."""
        with self._lock:
            session = self._session(conversation_id)
            if self.window_size and self.window_size > 0:
                return list(session.messages[-self.window_size:])
            return list(session.messages)

    def add_exchange(self, conversation_id: str, user_input: str, output: str) -> None:
        with self._lock:
            session = self._session(conversation_id)
            session.messages.append({"role": "user", "content": user_input})
            session.messages.append({"role": "assistant", "content": output})
            session.messageCount += 2
        logger.info(f"Added to memory [{conversation_id}]: \"{user_input[:50]}...\"")

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            session = self._session(conversation_id)
            session.messages.clear()
            session.messageCount = 0
        logger.info(f"Cleared memory: {conversation_id}")

    def delete(self, conversation_id: str) -> bool:
        with self._lock:
            return self._delete(conversation_id)

    def has(self, conversation_id: str) -> bool:
        with self._lock:
            self._cleanup(self.clock())
            return conversation_id in self.sessions

    def all_sessions(self) -> List[ConversationSession]:
        with self._lock:
            self._cleanup(self.clock())
            return list(self.sessions.values())

    def stats(self) -> Dict:
        with self._lock:
            now = self.clock()
            self._cleanup(now)
            sessions = list(self.sessions.values())
        return {
            "totalSessions": len(sessions),
            "sessions": [s.summary(now) for s in sessions],
        }

    def _session(self, conversation_id: str) -> ConversationSession:
        # caller holds the lock
        now = self.clock()
        self._cleanup(now)
        session = self.sessions.get(conversation_id)
        if session is None:
            session = ConversationSession(id=conversation_id, createdAt=now, lastAccessedAt=now)
            self.sessions[conversation_id] = session
            logger.info(f"Created new session: {conversation_id}")
            self._enforce_capacity()
        else:
            session.lastAccessedAt = now
        return session

    def _delete(self, conversation_id: str) -> bool:
        if self.sessions.pop(conversation_id, None) is None:
            return False
        logger.info(f"Deleted session: {conversation_id}")
        return True

    def _cleanup(self, now: float) -> None:
        expired = [sid for sid, s in self.sessions.items() if now - s.lastAccessedAt > self.session_timeout]
        for sid in expired:
            self._delete(sid)

    def _enforce_capacity(self) -> None:
        if len(self.sessions) <= self.max_sessions:
            return
        oldest = sorted(self.sessions.values(), key=lambda s: s.lastAccessedAt)
        for session in oldest[: len(self.sessions) - self.max_sessions]:
            self._delete(session.id)


def generate_conversation_id() -> str:
    return f"conv-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def format_chat_history(messages: List[Dict[str, str]]) -> str:
    return "\n".join(f"{m['role'].upper()}: {m['content']}" for m in messages)
