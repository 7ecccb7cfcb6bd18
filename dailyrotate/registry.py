"""Optional registry mapping transport names to factories."""
from __future__ import annotations

from threading import Lock
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from .errors import RegistryError
from .transport import DailyRotateFile

TransportFactory = Callable[..., Any]


class TransportRegistry:
    """Registers transport factories under unique names.

    Registering the same factory twice under one name is a no-op, so
    applications may call their registration hook more than once.
    """

    def __init__(self, factories: Optional[Iterable[Tuple[str, TransportFactory]]] = None) -> None:
        self._factories: Dict[str, TransportFactory] = {}
        self._lock = Lock()
        if factories:
            for name, factory in factories:
                self.register(name, factory)

    def register(self, name: str, factory: TransportFactory) -> bool:
        """Register ``factory``; return ``False`` if it was already registered."""

        if not name:
            raise RegistryError("Transport must be registered under a name")
        with self._lock:
            existing = self._factories.get(name)
            if existing is factory:
                return False
            if existing is not None:
                raise RegistryError(f"Transport '{name}' already registered")
            self._factories[name] = factory
        return True

    def get(self, name: str) -> TransportFactory:
        with self._lock:
            try:
                return self._factories[name]
            except KeyError as exc:
                raise RegistryError(f"Unknown transport '{name}'") from exc

    def create(self, name: str, *args: Any, **kwargs: Any) -> Any:
        return self.get(name)(*args, **kwargs)

    def names(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._factories))

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._factories


default_registry = TransportRegistry()


def register_transport(registry: Optional[TransportRegistry] = None) -> TransportRegistry:
    """Register :class:`DailyRotateFile` on ``registry`` (the shared one by default)."""

    registry = registry if registry is not None else default_registry
    registry.register(DailyRotateFile.name, DailyRotateFile)
    return registry


__all__ = ["TransportRegistry", "default_registry", "register_transport"]
