from __future__ import annotations

import os
from typing import Any, Dict, Iterable, List, Mapping, Optional


class VariableOverlay:
    """Ordered ``KEY=VALUE`` environment handed to external commands.

    Keys are not required to be unique in storage; lookups and overwrites
    always target the first matching entry.
    """

    def __init__(self, entries: Optional[Iterable[str]] = None) -> None:
        self._entries: List[str] = list(entries) if entries is not None else []

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "VariableOverlay":
        source = os.environ if environ is None else environ
        return cls(f"{key}={value}" for key, value in source.items())

    def set(self, key: str, value: Any) -> None:
        entry = _format_entry(key, value)
        index = self._index(key)
        if index is None:
            self._entries.append(entry)
        else:
            self._entries[index] = entry

    def set_if_not_present(self, key: str, value: Any) -> None:
        if self._index(key) is None:
            self._entries.append(_format_entry(key, value))

    def get(self, key: str) -> Optional[str]:
        index = self._index(key)
        return None if index is None else self._entries[index]

    def value(self, key: str) -> Optional[str]:
        entry = self.get(key)
        return None if entry is None else entry.partition("=")[2]

    def entries(self) -> List[str]:
        return list(self._entries)

    def snapshot(self) -> Dict[str, str]:
        """Mapping for ``subprocess``; the first entry of a repeated key wins."""
        env: Dict[str, str] = {}
        for entry in self._entries:
            key, _, value = entry.partition("=")
            env.setdefault(key, value)
        return env

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._index(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def _index(self, key: str) -> Optional[int]:
        prefix = f"{key}="
        for i, entry in enumerate(self._entries):
            if entry.startswith(prefix):
                return i
        return None


def _format_entry(key: str, value: Any) -> str:
    return f"{key}={value}"
