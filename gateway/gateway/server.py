"""Starlette transport for the JSON-RPC dispatcher.

``JsonRpcEndpoint`` is an ASGI app: it reads the body, hands it to the
dispatcher and writes back the resulting status and payload.  Every
response produced (visible or not) is left on
``request.state.rpc_responses`` for outer middleware.

Run directly::

    python -m gateway.server
"""

from __future__ import annotations

import argparse
import logging

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from gateway import handlers
from gateway.config import Settings
from gateway.context import LoggerFactory, child_logger
from gateway.dispatcher import (
    Dispatcher,
    HttpOutcome,
    ParseFailure,
    method_not_allowed,
    parse_error,
    read_json,
)
from gateway.registry import Registry

log = logging.getLogger(__name__)
call_log = logging.getLogger("gateway.calls")


# ── Helpers ──────────────────────────────────────────────────────────


def _render(outcome: HttpOutcome) -> Response:
    if outcome.payload is None:
        return Response(status_code=outcome.status)
    return JSONResponse(outcome.payload, status_code=outcome.status)


def _log_outcome(outcome: HttpOutcome) -> None:
    for resp in outcome.responses:
        method = resp.request.method if resp.request is not None else None
        if resp.error is not None:
            log.info("rpc ← %s(id=%s) error %s", method, resp.id, resp.error.code)
        else:
            log.info("rpc ← %s(id=%s) %.2fms", method, resp.id, resp.time or 0.0)


# ── RPC endpoint ─────────────────────────────────────────────────────


class JsonRpcEndpoint:
    """ASGI endpoint serving one dispatcher over HTTP POST."""

    def __init__(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await self.handle(request)
        await response(scope, receive, send)

    async def handle(self, request: Request) -> Response:
        if request.method != "POST":
            outcome = method_not_allowed()
        else:
            try:
                data = read_json(await request.body())
            except ParseFailure as exc:
                log.debug("unparsable body: %s", exc)
                outcome = parse_error(exc)
            else:
                outcome = await self.dispatcher.handle(data, ctx=request)

        request.state.rpc_responses = outcome.responses
        _log_outcome(outcome)
        return _render(outcome)


async def health(request: Request) -> JSONResponse:
    methods = request.app.state.registry.methods
    return JSONResponse({"status": "healthy", "methods": len(methods)})


# ── App factory ──────────────────────────────────────────────────────


def create_app(
    registry: Registry | None = None,
    path: str = "/rpc",
    logger_factory: LoggerFactory | None = None,
) -> Starlette:
    """Build a Starlette app serving *registry* at *path*.

    Defaults to the example methods in ``gateway.handlers``.
    """
    if registry is None:
        registry = handlers.registry

    dispatcher = Dispatcher(registry, logger_factory or child_logger(call_log))
    app = Starlette(
        debug=False,
        routes=[
            # no ``methods``: every verb reaches the endpoint so the 405 body is JSON-RPC
            Route(path, JsonRpcEndpoint(dispatcher)),
            Route("/health", health, methods=["GET"]),
        ],
    )
    app.state.registry = registry
    return app


app = create_app()


# ── Runnable entrypoint ──────────────────────────────────────────────


def main(argv: list[str] | None = None) -> None:
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description="JSON-RPC 2.0 gateway")
    parser.add_argument("--host", type=str, default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port")
    parser.add_argument("--path", type=str, default=settings.path, help="RPC endpoint path")
    parser.add_argument(
        "--log_level", type=str, default=settings.log_level, help="Logging level"
    )
    args = parser.parse_args(argv)

    import uvicorn

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(path=args.path),
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
