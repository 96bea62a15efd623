"""JSON-RPC 2.0 dispatch.

``Dispatcher.handle_request`` turns one decoded payload item into a
response and never raises.  ``Dispatcher.handle`` applies the batch
rules to a decoded body and returns an ``HttpOutcome``: the status code
and payload the transport should send.  Nothing here touches the
transport itself.
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, NoReturn

import anyio

from gateway import context as call_context
from gateway.context import LoggerFactory, MethodContext, null_logger
from gateway.params import resolve_params
from gateway.registry import Registry
from wire.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JsonRpcError,
)
from wire.jsonrpc import JsonRpcRequest, JsonRpcResponse

log = logging.getLogger(__name__)


class ParseFailure(ValueError):
    """Raised when an HTTP body is not valid JSON."""


def _reject_constant(name: str) -> NoReturn:
    raise ValueError(f"invalid JSON constant: {name}")


def read_json(body: bytes) -> Any:
    """Decode a UTF-8 JSON body — raises ``ParseFailure`` on bad input."""
    try:
        return json.loads(body.decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise ParseFailure(str(exc)) from exc


def _check_encodable(value: Any) -> None:
    # same settings as starlette's JSONResponse
    json.dumps(value, ensure_ascii=False, allow_nan=False)


def _encodable_error(error: JsonRpcError) -> JsonRpcError:
    """Drop ``info`` a handler attached if it cannot be sent."""
    try:
        _check_encodable(error.info)
    except (TypeError, ValueError, RecursionError) as exc:
        log.warning("dropping unencodable error data for code %s: %s", error.code, exc)
        return JsonRpcError(error.code, error.message, cause=error)
    return error


# ── HTTP outcome ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class HttpOutcome:
    """What the transport should send back.

    ``payload`` is the JSON body, or ``None`` for an empty body.
    ``responses`` holds every response produced, visible or not.
    """

    status: int
    payload: Any = None
    responses: list[JsonRpcResponse] = field(default_factory=list)


def _rejected(status: int, error: JsonRpcError) -> HttpOutcome:
    response = JsonRpcResponse.fail(None, error)
    return HttpOutcome(status, response.to_dict(), [response])


def method_not_allowed() -> HttpOutcome:
    return _rejected(405, JsonRpcError(INVALID_REQUEST, "Method Not Allowed"))


def parse_error(cause: BaseException | None = None) -> HttpOutcome:
    return _rejected(400, JsonRpcError(PARSE_ERROR, "Parse error", cause=cause))


def empty_batch() -> HttpOutcome:
    return _rejected(400, JsonRpcError(INVALID_REQUEST, "Invalid Request"))


# ── Dispatcher ───────────────────────────────────────────────────────


class Dispatcher:
    """Routes decoded JSON-RPC payloads to the methods of a registry.

    Parameters
    ----------
    registry : Registry
        Methods to dispatch to.  Read-only while serving.
    logger_factory : callable, optional
        Builds the per-call logger exposed to handlers.  Defaults to a
        logger that discards everything.
    """

    def __init__(
        self,
        registry: Registry,
        logger_factory: LoggerFactory | None = None,
    ) -> None:
        self.registry = registry
        self.logger_factory = logger_factory or null_logger

    async def handle(self, data: Any, ctx: Any = None) -> HttpOutcome:
        """Dispatch a decoded body, single call or batch."""
        if isinstance(data, list):
            # JSON-RPC 2.0 §6: an empty batch is an invalid request
            if not data:
                return empty_batch()
            responses = await self.handle_batch(data, ctx)
            visible = [r.to_dict() for r in responses if r.visible]
            return HttpOutcome(200, visible or None, responses)

        response = await self.handle_request(data, ctx)
        payload = response.to_dict() if response.visible else None
        return HttpOutcome(200, payload, [response])

    async def handle_batch(self, items: list[Any], ctx: Any = None) -> list[JsonRpcResponse]:
        """Handle every batch item concurrently; results keep input order."""
        results: list[JsonRpcResponse | None] = [None] * len(items)

        async def _run(index: int, item: Any) -> None:
            results[index] = await self.handle_request(item, ctx)

        async with anyio.create_task_group() as tg:
            for index, item in enumerate(items):
                tg.start_soon(_run, index, item)

        return [r for r in results if r is not None]

    async def handle_request(self, data: Any, ctx: Any = None) -> JsonRpcResponse:
        """Handle one decoded payload item.  Always returns a response."""
        try:
            request = JsonRpcRequest.from_dict(data)
        except ValueError as exc:
            error = JsonRpcError(INVALID_REQUEST, "Invalid Request", cause=exc)
            return JsonRpcResponse.fail(None, error)

        entry = self.registry.get(request.method)
        if entry is None:
            error = JsonRpcError(METHOD_NOT_FOUND, "Method not found")
            return JsonRpcResponse.fail(request, error)

        try:
            args = resolve_params(request.params, entry.params)
        except ValueError as exc:
            error = JsonRpcError(INVALID_PARAMS, "Invalid params", cause=exc)
            return JsonRpcResponse.fail(request, error)

        method_ctx = MethodContext(ctx=ctx, log=self._child_logger(request), request=request)
        token = call_context.enter(method_ctx)
        start = time.perf_counter()
        try:
            result = entry.handler(*args)
            if inspect.isawaitable(result):
                result = await result
        except JsonRpcError as error:
            return JsonRpcResponse.fail(request, _encodable_error(error))
        except Exception as exc:
            log.exception("handler error for %s(id=%s)", request.method, request.id)
            error = JsonRpcError(INTERNAL_ERROR, "Internal error", cause=exc)
            return JsonRpcResponse.fail(request, error)
        finally:
            call_context.leave(token)
        elapsed = (time.perf_counter() - start) * 1e3

        try:
            _check_encodable(result)
        except (TypeError, ValueError, RecursionError) as exc:
            log.exception("unencodable result from %s(id=%s)", request.method, request.id)
            error = JsonRpcError(INTERNAL_ERROR, "Internal error", cause=exc)
            return JsonRpcResponse.fail(request, error)
        return JsonRpcResponse.success(request, result, time=elapsed)

    def _child_logger(self, request: JsonRpcRequest) -> logging.LoggerAdapter:
        try:
            return self.logger_factory(request)
        except Exception:
            log.exception("logger factory failed for %s(id=%s)", request.method, request.id)
            return null_logger(request)
