"""JSON-RPC 2.0 wire-format models.

Pure data — no I/O, no business logic.  The gateway builds these from
decoded payloads and the client reads them back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from wire.errors import JsonRpcError

JSONRPC_VERSION = "2.0"

# Largest integer representable without loss in an IEEE-754 double.
MAX_SAFE_INTEGER = 2**53 - 1

JsonRpcId = Union[str, int, None]


class InvalidRequestError(ValueError):
    """Raised when a decoded payload is not a valid JSON-RPC request."""


def is_valid_id(value: Any) -> bool:
    """Return True if *value* may be used as a request id.

    Strings, ``None`` and integers within the safe range are accepted,
    as are integral floats such as ``1.0``.  Booleans are not.
    """
    if value is None or isinstance(value, str):
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        if not value.is_integer():
            return False
    elif not isinstance(value, int):
        return False
    return -MAX_SAFE_INTEGER <= value <= MAX_SAFE_INTEGER


# ── Models ───────────────────────────────────────────────────────────
@dataclass(frozen=True, slots=True)
class JsonRpcRequest:
    """Inbound JSON-RPC 2.0 request.

    A request without ``id`` (or with a null one) is a notification.
    ``params`` are kept as received; the dispatcher checks their shape.
    """

    method: str
    params: Any = None
    id: JsonRpcId = None
    jsonrpc: str = JSONRPC_VERSION

    def __post_init__(self) -> None:
        if self.jsonrpc != JSONRPC_VERSION:
            raise InvalidRequestError("invalid rpc version")
        if not is_valid_id(self.id):
            raise InvalidRequestError("invalid id")
        if isinstance(self.id, float):
            object.__setattr__(self, "id", int(self.id))
        if not isinstance(self.method, str) or not self.method:
            raise InvalidRequestError("invalid method")

    @property
    def is_notification(self) -> bool:
        return self.id is None

    # -- Convenience ---------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params is not None:
            d["params"] = self.params
        if self.id is not None:
            d["id"] = self.id
        return d

    @classmethod
    def from_dict(cls, raw: Any) -> "JsonRpcRequest":
        """Parse a decoded payload — raises ``InvalidRequestError`` on bad input.

        Checks run in wire order: version, id, method.
        """
        if not isinstance(raw, dict):
            raise InvalidRequestError("invalid rpc version")
        return cls(
            jsonrpc=raw.get("jsonrpc"),
            id=raw.get("id"),
            method=raw.get("method"),
            params=raw.get("params"),
        )


@dataclass(frozen=True, slots=True)
class JsonRpcResponse:
    """Outbound JSON-RPC 2.0 response.

    ``request`` and ``time`` (handler run time in milliseconds) are
    diagnostics and are not part of the wire form.
    """

    result: Any = None
    error: JsonRpcError | None = None
    request: JsonRpcRequest | None = field(default=None, repr=False)
    time: float | None = None
    jsonrpc: str = JSONRPC_VERSION

    def __post_init__(self) -> None:
        if self.result is not None and self.error is not None:
            raise ValueError("result and error are mutually exclusive")

    @property
    def id(self) -> JsonRpcId:
        return self.request.id if self.request is not None else None

    @property
    def visible(self) -> bool:
        """True if this response belongs in the HTTP body.

        Successful notifications are suppressed, errors never are.
        """
        return self.id is not None or self.error is not None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            d["error"] = self.error.to_dict()
        else:
            d["result"] = self.result
        return d

    # -- Factories -----------------------------------------------------
    @classmethod
    def success(
        cls, request: JsonRpcRequest, result: Any, time: float | None = None
    ) -> "JsonRpcResponse":
        return cls(request=request, result=result, time=time)

    @classmethod
    def fail(
        cls, request: JsonRpcRequest | None, error: JsonRpcError
    ) -> "JsonRpcResponse":
        return cls(request=request, error=error)
