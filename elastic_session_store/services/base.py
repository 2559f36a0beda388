"""
Session store interface.

The contract a session middleware depends on. Every operation is a
coroutine: the awaited result is the success value and failures surface as
``StoreError``.
"""

from abc import ABC, abstractmethod
from typing import Any


class SessionStore(ABC):

    @abstractmethod
    async def get(self, sid: str) -> dict[str, Any] | None:
        """Return the session payload, or None when there is no live session."""

    @abstractmethod
    async def set(self, sid: str, session: dict[str, Any]) -> dict:
        """Persist the session payload, replacing whatever was stored."""

    @abstractmethod
    async def destroy(self, sid: str) -> dict:
        """Delete the session. Destroying an unknown session is not an error."""

    @abstractmethod
    async def touch(self, sid: str, session: dict[str, Any]) -> dict:
        """Extend the session's lifetime without replacing its payload."""
