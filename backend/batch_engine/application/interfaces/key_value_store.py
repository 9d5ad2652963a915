"""Abstract key-value persistence interface (port) backing the job store."""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Port for durable string storage — implemented in the infrastructure layer.

    Every write replaces the whole value for a key; there are no partial
    updates.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the key. Deleting an absent key is not an error."""
        ...
