"""Method registry.

Handlers register under a name, optionally prefixed by the registry's
namespace.  Registration happens before serving; dispatch only reads.

Usage::

    registry = Registry()

    @registry.method()
    async def add(a, b):
        return a + b

    math = Registry("math")
    math.register("subtract", lambda minuend, subtrahend: minuend - subtrahend)
    registry.include(math)   # exposes "math.subtract"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Sequence

from gateway.params import FormalParams, get_param_names

log = logging.getLogger(__name__)

# A handler takes positional params and returns a result or an awaitable.
HandlerFn = Callable[..., Any]


class DuplicateMethodError(ValueError):
    """Raised when a method name is registered twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"method already exists: {name}")


@dataclass(frozen=True, slots=True)
class RegisteredMethod:
    name: str
    handler: HandlerFn
    params: FormalParams


class Registry:
    """A name → handler mapping.

    Parameters
    ----------
    namespace : str, optional
        Prefix added to every registered name as ``"<namespace>.<name>"``.
    """

    def __init__(self, namespace: str | None = None) -> None:
        self.namespace = namespace
        self._methods: dict[str, RegisteredMethod] = {}

    def qualify(self, name: str) -> str:
        return f"{self.namespace}.{name}" if self.namespace else name

    # -- Registration --------------------------------------------------
    def register(
        self,
        name: str,
        handler: HandlerFn,
        params: Sequence[str] | None = None,
    ) -> RegisteredMethod:
        """Register *handler* under *name*.

        Formal parameter names are introspected from the handler unless
        given explicitly in *params*.  Raises ``DuplicateMethodError`` if
        the (namespaced) name is taken.
        """
        full = self.qualify(name)
        formal = FormalParams.declared(params) if params is not None else get_param_names(handler)
        return self._add(RegisteredMethod(full, handler, formal))

    def method(
        self, name: str | None = None, params: Sequence[str] | None = None
    ) -> Callable[[HandlerFn], HandlerFn]:
        """Decorator that registers *fn* under *name* (default: its ``__name__``)."""

        def decorator(fn: HandlerFn) -> HandlerFn:
            self.register(name or fn.__name__, fn, params)
            return fn

        return decorator

    def include(self, other: "Registry") -> None:
        """Copy every method of *other*, keeping its namespaced names.

        Nothing is copied if any name clashes.
        """
        for entry in other:
            if entry.name in self._methods:
                raise DuplicateMethodError(entry.name)
        for entry in other:
            self._add(entry)

    def _add(self, entry: RegisteredMethod) -> RegisteredMethod:
        if entry.name in self._methods:
            raise DuplicateMethodError(entry.name)
        self._methods[entry.name] = entry
        log.debug(
            "registered method %r → %s%s",
            entry.name,
            getattr(entry.handler, "__qualname__", repr(entry.handler)),
            entry.params.names,
        )
        return entry

    # -- Lookup --------------------------------------------------------
    def get(self, name: str) -> RegisteredMethod | None:
        return self._methods.get(name)

    @property
    def methods(self) -> list[str]:
        return list(self._methods.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __iter__(self) -> Iterator[RegisteredMethod]:
        return iter(list(self._methods.values()))

    def __len__(self) -> int:
        return len(self._methods)
