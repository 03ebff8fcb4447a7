"""Read-only access to previously collected fact data."""

from __future__ import annotations

import copy
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional


class FactStore(Mapping[str, Any]):
    """Snapshot of collected facts keyed by fact identifier.

    The store copies its input on construction so that templates evaluated
    concurrently never observe later changes made by the collection phase.
    """

    def __init__(self, facts: Optional[Mapping[str, Any]] = None) -> None:
        self._facts: Mapping[str, Any] = MappingProxyType(copy.deepcopy(dict(facts or {})))

    def __getitem__(self, fact_id: str) -> Any:
        return self._facts[fact_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._facts)

    def __len__(self) -> int:
        return len(self._facts)

    def lookup(self, fact_id: str, key: str) -> Any:
        """Return ``key`` from the fact's data, or ``None`` when absent.

        Flat maps are indexed directly. When the key is not present as-is it
        is treated as a dotted path into nested maps and lists, so
        ``lookup("composer", "require.php")`` reaches ``{"require": {"php": ...}}``.
        """

        data = self._facts.get(fact_id)
        if not isinstance(data, Mapping):
            return None
        if key in data:
            return data[key]
        current: Any = data
        for part in key.split("."):
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                return None
        return current

    def lookup_default(self, fact_id: str, key: str, default: Any) -> Any:
        value = self.lookup(fact_id, key)
        return default if value is None else value

    def lookup_string(self, fact_id: str, key: str) -> str:
        """Return a string value from a flat string map, or an empty string."""

        value = self.lookup(fact_id, key)
        return value if isinstance(value, str) else ""


EMPTY_FACTS = FactStore()
