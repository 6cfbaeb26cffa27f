"""Named component factories with load logging."""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from osw.utils.logging import get_logger

T = TypeVar("T")

log = get_logger(__name__, component="config.factories")


class FactoryBase(Generic[T]):
    """Deferred builder for a named engine component (e.g. a pricer)."""

    def __init__(self, name: str, builder: Callable[[], T], *, kind: str = "component") -> None:
        self.name = name
        self.kind = kind
        self.builder = builder

    def create(self, prior: str | None = None) -> T:
        component = self.builder()
        log.info(
            "Component loaded",
            extra={"kind": self.kind, "type": component.__class__.__name__, "factory": self.name, "prior": prior},
        )
        return component

    def __repr__(self) -> str:
        return f"FactoryBase(kind={self.kind!r}, name={self.name!r})"


__all__ = ["FactoryBase"]
