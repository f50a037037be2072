"""In-memory conversation store partitioned by thread id."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from claimai.models.conversation import Conversation, Message

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Thread-safe store of conversations keyed by thread id.

    Creation of a conversation is guarded by a lock, so two first requests
    for the same thread get the same object. When ``max_threads`` is set the
    least recently used conversation is evicted once the store is full;
    a conversation whose turn is still running is never evicted.

    Different threads never share a conversation. Turns on the same thread
    are serialized by the orchestrator through :meth:`get_lock`.
    """

    def __init__(self, max_threads: int = 0):
        self._lock = threading.Lock()
        self._conversations: OrderedDict[str, Conversation] = OrderedDict()
        self._thread_locks: dict[str, threading.Lock] = {}
        self._max_threads = max_threads

    def get(self, thread_id: str) -> Conversation:
        """Get the conversation for ``thread_id``, creating it on first access."""
        with self._lock:
            conversation = self._conversations.get(thread_id)
            if conversation is not None:
                self._conversations.move_to_end(thread_id)
                return conversation

            conversation = Conversation(id=thread_id)
            self._conversations[thread_id] = conversation
            if self._max_threads:
                self._evict(keep=thread_id)
            return conversation

    def _evict(self, keep: str) -> None:
        """Drop least recently used conversations whose turn lock is free. Caller holds ``_lock``."""
        overflow = len(self._conversations) - self._max_threads
        for candidate in list(self._conversations):
            if overflow <= 0:
                break
            if candidate == keep:
                continue
            lock = self._thread_locks.get(candidate)
            if lock is not None and lock.locked():
                continue
            del self._conversations[candidate]
            self._thread_locks.pop(candidate, None)
            overflow -= 1
            logger.info("Evicted conversation '%s' (store limit %d)", candidate, self._max_threads)

    def peek(self, thread_id: str) -> Conversation | None:
        """The conversation if it exists, without creating or touching it."""
        with self._lock:
            return self._conversations.get(thread_id)

    def append(self, thread_id: str, message: Message) -> int:
        """Append ``message`` to the thread and return its index."""
        return self.get(thread_id).append(message)

    def tag(self, thread_id: str, index: int, worker: str) -> None:
        """Record the authoring worker of an assistant message."""
        self.get(thread_id).tag(index, worker)

    def get_lock(self, thread_id: str) -> threading.Lock:
        """Per-thread lock for serializing turns on the same thread."""
        with self._lock:
            if thread_id not in self._thread_locks:
                self._thread_locks[thread_id] = threading.Lock()
            return self._thread_locks[thread_id]

    def delete(self, thread_id: str) -> bool:
        with self._lock:
            self._thread_locks.pop(thread_id, None)
            return self._conversations.pop(thread_id, None) is not None

    def thread_ids(self) -> list[str]:
        with self._lock:
            return list(self._conversations)

    def __len__(self) -> int:
        with self._lock:
            return len(self._conversations)
