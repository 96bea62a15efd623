"""wire — JSON-RPC 2.0 wire-format models and errors."""

from wire.errors import (
    ASSERTION_FAILED,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ErrorCode,
    JsonRpcError,
    rpc_assert,
    rpc_assert_equal,
)
from wire.jsonrpc import (
    JSONRPC_VERSION,
    InvalidRequestError,
    JsonRpcId,
    JsonRpcRequest,
    JsonRpcResponse,
    is_valid_id,
)

__all__ = [
    "JsonRpcRequest",
    "JsonRpcResponse",
    "JsonRpcError",
    "JsonRpcId",
    "InvalidRequestError",
    "ErrorCode",
    "JSONRPC_VERSION",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "ASSERTION_FAILED",
    "is_valid_id",
    "rpc_assert",
    "rpc_assert_equal",
]
