"""KeyValueStore protocol: durable storage contract for whole records."""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Repository interface for JSON-serializable records keyed by name.

    Each ``put`` replaces the stored value as a whole; readers never see a
    partially written record.
    """

    async def get(self, key: str) -> Optional[Any]:
        """Load the record stored under *key*.

        Args:
            key: Record name, e.g. ``"sportstracker_users"``.

        Returns:
            The decoded JSON value, or None if the key is absent.

        Raises:
            StorageError: The stored value cannot be read or decoded.
        """
        ...

    async def put(self, key: str, value: Any) -> None:
        """Replace the record stored under *key* with *value*."""
        ...

    async def delete(self, key: str) -> None:
        """Remove *key*; absent keys are ignored."""
        ...
