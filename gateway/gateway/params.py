"""Formal parameter introspection and call-argument resolution.

Handlers are always invoked positionally.  Named ``params`` are mapped
onto the handler's declared parameter order before the call.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Sequence

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


class InvalidParamsError(ValueError):
    """Raised when call params cannot be mapped onto a handler."""


@dataclass(frozen=True, slots=True)
class FormalParams:
    """Ordered positional parameter names of a handler.

    ``required`` counts the leading names without a default.
    ``variadic`` lifts the upper bound on positional params; it is set
    for ``*args`` handlers and for explicitly declared names.
    """

    names: tuple[str, ...] = ()
    required: int = 0
    variadic: bool = False

    @classmethod
    def declared(cls, names: Sequence[str]) -> "FormalParams":
        """Explicit names given at registration; arity is not checked."""
        return cls(names=tuple(names), variadic=True)


def get_param_names(fn: Callable[..., Any]) -> FormalParams:
    """Introspect *fn* for its positional parameters.

    Keyword-only and ``**kwargs`` parameters cannot be filled
    positionally and are ignored.
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return FormalParams(variadic=True)

    names: list[str] = []
    required = 0
    variadic = False
    for p in sig.parameters.values():
        if p.kind in _POSITIONAL:
            names.append(p.name)
            if p.default is inspect.Parameter.empty:
                required = len(names)
        elif p.kind is inspect.Parameter.VAR_POSITIONAL:
            variadic = True
    return FormalParams(names=tuple(names), required=required, variadic=variadic)


def resolve_params(params: Any, formal: FormalParams) -> list[Any]:
    """Turn request ``params`` into a positional argument list.

    Raises ``InvalidParamsError`` if the params do not fit *formal*.
    """
    if params is None:
        args: list[Any] = []
    elif isinstance(params, list):
        args = list(params)
        if not formal.variadic and len(args) > len(formal.names):
            raise InvalidParamsError(
                f"expected at most {len(formal.names)} params, got {len(args)}"
            )
    elif isinstance(params, dict):
        args = _resolve_named(params, formal)
    else:
        raise InvalidParamsError("params must be an array or an object")

    if len(args) < formal.required:
        missing = ", ".join(formal.names[len(args) : formal.required])
        raise InvalidParamsError(f"missing required params: {missing}")
    return args


def _resolve_named(params: dict[str, Any], formal: FormalParams) -> list[Any]:
    unknown = [name for name in params if name not in formal.names]
    if unknown:
        raise InvalidParamsError(f"unknown params: {', '.join(sorted(unknown))}")

    # Trailing names the caller left out fall back to the handler's defaults.
    last = max(
        (i for i, name in enumerate(formal.names) if name in params), default=-1
    )
    args: list[Any] = []
    for i, name in enumerate(formal.names[: last + 1]):
        if name in params:
            args.append(params[name])
        elif i < formal.required:
            raise InvalidParamsError(f"missing required param: {name}")
        else:
            raise InvalidParamsError(
                f"param {name!r} must be given when a later param is"
            )
    return args
