"""Per-call context handed to method handlers.

Handlers take only their RPC params.  Everything else about the call
(the transport request, a scoped logger, the validated request and the
assertion helpers) is reachable through ``current_context()`` while the
handler runs.

Each batch item runs in its own task, and so in its own copy of the
context variable.
"""

from __future__ import annotations

import contextvars
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from wire.errors import rpc_assert, rpc_assert_equal
from wire.jsonrpc import JsonRpcRequest

# Builds a child logger for one request.
LoggerFactory = Callable[[JsonRpcRequest], logging.LoggerAdapter]

_null_log = logging.getLogger("gateway.null")
_null_log.addHandler(logging.NullHandler())
_null_log.propagate = False


def null_logger(request: JsonRpcRequest) -> logging.LoggerAdapter:
    """Default factory: a logger that drops every record."""
    return logging.LoggerAdapter(_null_log, {})


def child_logger(base: logging.Logger) -> LoggerFactory:
    """Return a factory tagging records from *base* with the call's method and id."""

    def factory(request: JsonRpcRequest) -> logging.LoggerAdapter:
        return logging.LoggerAdapter(
            base, {"rpc_method": request.method, "rpc_id": request.id}
        )

    return factory


@dataclass(frozen=True, slots=True)
class MethodContext:
    ctx: Any
    log: logging.LoggerAdapter
    request: JsonRpcRequest
    assert_: Callable[..., None] = field(default=rpc_assert, repr=False)
    assert_equal: Callable[..., None] = field(default=rpc_assert_equal, repr=False)


_current: contextvars.ContextVar[MethodContext | None] = contextvars.ContextVar(
    "gateway_method_context", default=None
)


def current_context() -> MethodContext:
    """Return the context of the call being handled.

    Raises ``RuntimeError`` outside a handler.
    """
    context = _current.get()
    if context is None:
        raise RuntimeError("no JSON-RPC call is being handled")
    return context


def enter(context: MethodContext) -> contextvars.Token:
    return _current.set(context)


def leave(token: contextvars.Token) -> None:
    _current.reset(token)
