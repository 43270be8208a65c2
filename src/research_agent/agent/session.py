"""In-memory, per-session conversation transcripts."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Sequence

from loguru import logger

from research_agent.errors import SessionStoreError
from research_agent.types import Message

RetentionPolicy = Callable[[list[Message]], list[Message]]


def keep_all(transcript: list[Message]) -> list[Message]:
    """Default retention: history grows for the lifetime of the process."""
    return transcript


def sliding_window(max_messages: int) -> RetentionPolicy:
    """Keep only the most recent `max_messages` entries."""

    if max_messages < 1:
        raise ValueError("max_messages must be >= 1")

    def _policy(transcript: list[Message]) -> list[Message]:
        return transcript[-max_messages:]

    return _policy


class SessionHistoryStore:
    """Session key -> ordered transcript.

    Appends for one key are serialized by a per-key `asyncio.Lock`; different
    keys use different locks and never wait on each other. Transcripts are
    created lazily on first reference. Reads return immutable snapshots.
    """

    def __init__(self, retention: RetentionPolicy = keep_all) -> None:
        self._transcripts: dict[str, list[Message]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._registry_lock = threading.Lock()
        self._retention = retention
        self._closed = False

    def _lock_for(self, session_key: str) -> asyncio.Lock:
        with self._registry_lock:
            lock = self._locks.get(session_key)
            if lock is None:
                lock = self._locks[session_key] = asyncio.Lock()
                self._transcripts.setdefault(session_key, [])
            return lock

    def _check_open(self, session_key: str) -> None:
        if self._closed:
            raise SessionStoreError("session store is closed")
        if not session_key:
            raise SessionStoreError("session key must be a non-empty string")

    async def append(self, session_key: str, message: Message) -> None:
        await self.extend(session_key, [message])

    async def extend(self, session_key: str, messages: Sequence[Message]) -> None:
        """Append several messages as one atomic step."""

        self._check_open(session_key)
        async with self._lock_for(session_key):
            transcript = self._transcripts[session_key] + list(messages)
            self._transcripts[session_key] = self._retention(transcript)
        logger.debug(
            "Session {} +{} messages (now {})",
            session_key,
            len(messages),
            len(self._transcripts[session_key]),
        )

    def get(self, session_key: str) -> tuple[Message, ...]:
        self._check_open(session_key)
        self._lock_for(session_key)
        # The list is replaced, never mutated, so reading the reference is safe.
        return tuple(self._transcripts[session_key])

    def session_keys(self) -> list[str]:
        with self._registry_lock:
            return list(self._transcripts)

    def __contains__(self, session_key: object) -> bool:
        return session_key in self._transcripts

    def close(self) -> None:
        """End the store's lifecycle and drop all transcripts."""
        with self._registry_lock:
            self._transcripts.clear()
            self._locks.clear()
            self._closed = True
