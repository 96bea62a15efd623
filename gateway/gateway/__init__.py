"""gateway — JSON-RPC 2.0 method registry, dispatcher and HTTP transport."""

from gateway.context import MethodContext, current_context
from gateway.dispatcher import Dispatcher, HttpOutcome
from gateway.params import FormalParams, InvalidParamsError
from gateway.registry import DuplicateMethodError, Registry

__all__ = [
    "Dispatcher",
    "DuplicateMethodError",
    "FormalParams",
    "HttpOutcome",
    "InvalidParamsError",
    "MethodContext",
    "Registry",
    "current_context",
]
