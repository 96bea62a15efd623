"""caller — async JSON-RPC 2.0 client."""

from caller.client import ResponseError, RpcClient

__all__ = ["RpcClient", "ResponseError"]
