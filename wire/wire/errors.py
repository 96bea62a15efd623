"""JSON-RPC 2.0 error model.

One exception type carries every protocol and application error.  Its
wire form is ``{code, message}`` plus ``data`` when structured info was
attached.  The optional ``cause`` is for logging only and never reaches
the wire.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

# ── Reserved error codes (JSON-RPC 2.0 §5.1) ────────────────────────
# Application errors should not use these.
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Raised by the assertion helpers.
ASSERTION_FAILED = 400


class ErrorCode(IntEnum):
    PARSE_ERROR = PARSE_ERROR
    INVALID_REQUEST = INVALID_REQUEST
    METHOD_NOT_FOUND = METHOD_NOT_FOUND
    INVALID_PARAMS = INVALID_PARAMS
    INTERNAL_ERROR = INTERNAL_ERROR


class JsonRpcError(Exception):
    """JSON-RPC 2.0 error object, raisable from method handlers.

    Parameters
    ----------
    code : int
        Numeric error code.
    message : str
        Short description sent to the caller.
    info : dict, optional
        Structured context, serialised as ``data`` when non-empty.
    cause : BaseException, optional
        Underlying failure, kept for logging.
    """

    def __init__(
        self,
        code: int,
        message: str,
        *,
        info: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.info: dict[str, Any] = dict(info) if info else {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"JsonRpcError({self.code}, {self.message!r})"

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.info:
            d["data"] = self.info
        return d

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "JsonRpcError":
        """Rebuild an error from its wire form."""
        data = raw.get("data")
        if data is not None and not isinstance(data, dict):
            data = {"data": data}
        return cls(raw["code"], raw.get("message", ""), info=data)


# ── Assertion helpers for handler authors ────────────────────────────


def rpc_assert(value: Any, message: str | None = None) -> None:
    """Raise an ``ASSERTION_FAILED`` error if *value* is falsy."""
    if not value:
        raise JsonRpcError(ASSERTION_FAILED, message or "Assertion failed")


def rpc_assert_equal(actual: Any, expected: Any, message: str | None = None) -> None:
    """Raise an ``ASSERTION_FAILED`` error carrying both values if they differ."""
    if actual != expected:
        raise JsonRpcError(
            ASSERTION_FAILED,
            message or "Assertion failed",
            info={"actual": actual, "expected": expected},
        )
