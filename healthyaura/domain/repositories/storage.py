"""
Session storage interface.
Defines the contract for the durable key/value store the session is persisted in.
"""

from typing import Optional, Protocol


class SessionStorage(Protocol):
    """Interface for string key/value persistence (the client's localStorage)."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def remove(self, key: str) -> None:
        """Delete a key; absent keys are ignored."""
        ...
