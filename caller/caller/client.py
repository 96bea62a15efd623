"""Async JSON-RPC 2.0 client.

* ``call(method, params)``   → result, or raises ``JsonRpcError``
* ``notify(method, params)`` → fire-and-forget, no id
* ``batch(calls)``           → one HTTP round trip, results in call order

Uses ``httpx.AsyncClient`` with connection pooling.

Run directly for a quick demo against a local gateway::

    python -m caller.client
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from wire.errors import JsonRpcError
from wire.jsonrpc import JsonRpcRequest

log = logging.getLogger(__name__)


class ResponseError(Exception):
    """Raised when the server's reply is not a usable JSON-RPC response."""


class RpcClient:
    """Thin async client that talks JSON-RPC 2.0 over HTTP.

    Parameters
    ----------
    base_url : str
        Gateway origin, e.g. ``http://127.0.0.1:8100``.
    path : str
        RPC endpoint path.
    timeout : float
        Default request timeout in seconds.
    max_retries : int
        Max connection-level retries.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport, e.g. ``httpx.ASGITransport`` in tests.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8100",
        path: str = "/rpc",
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.path = path
        self.max_retries = max_retries
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    # -- Lifecycle -----------------------------------------------------

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- Internal helpers ----------------------------------------------

    def _get_retrier(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, max=10),
            retry=retry_if_exception_type((httpx.NetworkError, httpx.TimeoutException)),
            reraise=True,
        )

    async def _post(self, payload: Any) -> Any:
        """POST *payload* and return the decoded body, or None if empty."""
        async for attempt in self._get_retrier():
            with attempt:
                resp = await self._client.post(self.path, json=payload)

        # 4xx bodies are JSON-RPC errors; only server faults are raised here
        if resp.status_code >= 500:
            resp.raise_for_status()
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ResponseError(f"invalid JSON in response: {exc}") from exc

    def _request(self, method: str, params: Any, notify: bool = False) -> JsonRpcRequest:
        req_id = None if notify else next(self._ids)
        return JsonRpcRequest(method=method, params=params, id=req_id)

    # -- Unary RPC -----------------------------------------------------

    async def call(self, method: str, params: Any = None) -> Any:
        """Send one request and return its result.

        Raises ``JsonRpcError`` if the gateway returns an error.
        """
        req = self._request(method, params)
        log.debug("rpc → %s(id=%s)", method, req.id)

        data = await self._post(req.to_dict())
        if not isinstance(data, dict):
            raise ResponseError(f"expected a response object, got {data!r}")
        if data.get("error") is not None:
            raise JsonRpcError.from_dict(data["error"])
        return data.get("result")

    async def notify(self, method: str, params: Any = None) -> None:
        """Send a notification.  Only a failed call produces a reply."""
        req = self._request(method, params, notify=True)
        log.debug("rpc → %s (notification)", method)

        data = await self._post(req.to_dict())
        if isinstance(data, dict) and data.get("error") is not None:
            raise JsonRpcError.from_dict(data["error"])

    # -- Batch RPC -----------------------------------------------------

    async def batch(self, calls: Sequence[tuple[str, Any]]) -> list[Any]:
        """Send *calls* as one batch.

        Returns one entry per call, in order: the result, or the
        ``JsonRpcError`` that call failed with.
        """
        requests = [self._request(method, params) for method, params in calls]
        log.debug("rpc → batch of %d", len(requests))

        data = await self._post([r.to_dict() for r in requests])
        if isinstance(data, dict) and data.get("error") is not None:
            raise JsonRpcError.from_dict(data["error"])
        if not isinstance(data, list):
            raise ResponseError(f"expected a response array, got {data!r}")

        by_id = {item.get("id"): item for item in data if isinstance(item, dict)}
        results: list[Any] = []
        for req in requests:
            item = by_id.get(req.id)
            if item is None:
                raise ResponseError(f"no response for id {req.id}")
            if item.get("error") is not None:
                results.append(JsonRpcError.from_dict(item["error"]))
            else:
                results.append(item.get("result"))
        return results


# ── Demo entrypoint ──────────────────────────────────────────────────


async def _demo() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    async with RpcClient() as client:
        print("── add ──")
        print(f"  result: {await client.call('add', [17, 25])}")

        print("── math.subtract (named) ──")
        result = await client.call("math.subtract", {"minuend": 42, "subtrahend": 23})
        print(f"  result: {result}")

        print("── batch ──")
        for result in await client.batch([("echo", ["hi"]), ("math.divide", [1, 0])]):
            print(f"  result: {result!r}")

        await client.notify("notify", ["done"])
        print("── done ──")


if __name__ == "__main__":
    import anyio

    anyio.run(_demo)
