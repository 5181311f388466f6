from __future__ import annotations

import importlib
import logging
from typing import Generic, TypeVar

T = TypeVar("T")

L = logging.getLogger("morse_runtime.registry")


class NamedRegistry(Generic[T]):
    """Name -> factory table; unknown names trigger a lazy `<package>.<name>` import."""

    def __init__(self, package: str, label: str):
        self.package = package
        self.label = label
        self._entries: dict[str, T] = {}

    def register(self, name: str):
        def decorator(obj: T) -> T:
            self._entries[name] = obj
            return obj

        return decorator

    def names(self) -> list[str]:
        return sorted(self._entries)

    def resolve(self, name: str) -> T:
        key = str(name or "").strip()
        import_err: Exception | None = None
        if key and key not in self._entries:
            try:
                importlib.import_module(f"{self.package}.{key}")
            except ImportError as e:
                import_err = e
                L.debug("lazy import %s.%s failed: %s", self.package, key, e)
        if key not in self._entries:
            hint = f" (import failed: {import_err})" if import_err else ""
            raise ValueError(
                f"Unknown {self.label} '{key}'. "
                f"Available: {', '.join(self.names()) or 'none'}{hint}"
            )
        return self._entries[key]


__all__ = ["NamedRegistry"]
