"""Key-value store interface and the in-memory implementation."""

from abc import ABC, abstractmethod
from typing import Mapping, Optional


class KeyValueStore(ABC):
    """String-keyed storage for JSON-serialized values."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set_many(self, values: Mapping[str, str]) -> None:
        """Write every key or none of them; raises ``StoreError`` on failure."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key; missing keys are ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every key."""
        pass

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryStore(KeyValueStore):
    """Dict-backed store.

    Serves as the session-scoped store (it lives exactly as long as the
    process) and as the fake used by tests.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_many(self, values: Mapping[str, str]) -> None:
        for key, value in values.items():
            if not isinstance(value, str):
                raise TypeError(f"Value for {key!r} must be a string, got {type(value).__name__}")
        self._data.update(values)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)
