"""Utility registries with case-insensitive lookups."""

from typing import Any


class CaseInsensitiveRegistry(dict):
    """
    Dictionary-like registry with case-insensitive key lookup.

    Keys are stored exactly as provided while lookups (``[]``, :meth:`get`,
    membership checks) normalize to lowercase. Two keys that differ only by
    case are rejected.

    Attributes:
        _lower_map (dict[str, str]): Lowercased key to stored key.

    """

    def __init__(self, *args, **kwargs):
        super().__init__()
        self._lower_map: dict[str, str] = {}
        if args or kwargs:
            for k, v in dict(*args, **kwargs).items():
                self[k] = v

    # ==========================================
    # Internal helpers
    # ==========================================
    @staticmethod
    def _normalize(key: str) -> str:
        if not isinstance(key, str):
            msg = f"Registry keys must be strings, got {type(key)}"
            raise TypeError(msg)
        return key.lower()

    def get_original_key(self, key: str) -> str | None:
        """Return the stored key matching `key` case-insensitively, or None."""
        return self._lower_map.get(self._normalize(key))

    # ==========================================
    # Core dict overrides
    # ==========================================
    def __setitem__(self, key: str, value):
        lk = self._normalize(key)
        if lk in self._lower_map and self._lower_map[lk] != key:
            msg = (
                f"Cannot insert key '{key}' - lowercase equivalent collides "
                f"with existing key '{self._lower_map[lk]}'"
            )
            raise KeyError(msg)
        super().__setitem__(key, value)
        self._lower_map[lk] = key

    def __getitem__(self, key: str):
        orig = self.get_original_key(key)
        if orig is None:
            raise KeyError(key)
        return super().__getitem__(orig)

    def __delitem__(self, key: str):
        orig = self.get_original_key(key)
        if orig is None:
            raise KeyError(key)
        del self._lower_map[orig.lower()]
        super().__delitem__(orig)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get_original_key(key) is not None

    def get(self, key: str, default=None):
        """Retrieve a value with case-insensitive lookup and default."""
        orig = self.get_original_key(key)
        if orig is None:
            return default
        return super().__getitem__(orig)

    def register(self, name: str, obj: Any):
        """
        Register an object under a case-insensitive key.

        Args:
            name (str): Key to register with.
            obj (Any): Object to store.

        Raises:
            KeyError: If the key is already registered (case-insensitive).

        """
        if name in self:
            msg = f"Duplicate registry key (case-insensitive): {name}"
            raise KeyError(msg)
        self[name] = obj
