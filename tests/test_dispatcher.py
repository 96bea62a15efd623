"""Tests for the transport-free dispatcher."""

import logging
from datetime import datetime

import anyio
import pytest
from gateway.context import child_logger, current_context
from gateway.dispatcher import Dispatcher, ParseFailure, empty_batch, method_not_allowed, parse_error, read_json
from gateway.registry import Registry
from wire.errors import (
    ASSERTION_FAILED,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JsonRpcError,
)


def _build_registry() -> Registry:
    registry = Registry()

    @registry.method()
    def add(a, b):
        return a + b

    @registry.method()
    async def slow_echo(value, delay=0.0):
        await anyio.sleep(delay)
        return value

    @registry.method()
    def boom():
        raise RuntimeError("secret detail")

    @registry.method()
    def refuse():
        raise JsonRpcError(42, "refused", info={"reason": "policy"})

    @registry.method()
    def guarded(value):
        current_context().assert_equal(value, 1)
        return value

    @registry.method()
    def context():
        call = current_context()
        return {"ctx": call.ctx, "id": call.request.id, "method": call.request.method}

    @registry.method()
    def nothing():
        pass

    return registry


@pytest.fixture
def dispatcher():
    return Dispatcher(_build_registry())


def call(method, params=None, id=1):
    payload = {"jsonrpc": "2.0", "method": method, "id": id}
    if params is not None:
        payload["params"] = params
    return payload


# ── Single requests ──────────────────────────────────────────────────


@pytest.mark.anyio
async def test_positional_call(dispatcher):
    resp = await dispatcher.handle_request(call("add", [2, 3]))
    assert resp.to_dict() == {"jsonrpc": "2.0", "id": 1, "result": 5}
    assert resp.time is not None and resp.time >= 0


@pytest.mark.anyio
async def test_named_call(dispatcher):
    resp = await dispatcher.handle_request(call("add", {"b": "x", "a": "y"}, id="s"))
    assert resp.to_dict() == {"jsonrpc": "2.0", "id": "s", "result": "yx"}


@pytest.mark.anyio
async def test_async_handler(dispatcher):
    resp = await dispatcher.handle_request(call("slow_echo", {"value": [1, 2]}))
    assert resp.result == [1, 2]


@pytest.mark.anyio
async def test_none_result(dispatcher):
    resp = await dispatcher.handle_request(call("nothing"))
    assert resp.to_dict() == {"jsonrpc": "2.0", "id": 1, "result": None}


@pytest.mark.anyio
async def test_method_not_found(dispatcher):
    resp = await dispatcher.handle_request(call("missing"))
    assert resp.to_dict() == {
        "jsonrpc": "2.0",
        "id": 1,
        "error": {"code": -32601, "message": "Method not found"},
    }
    assert resp.request.method == "missing"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "payload",
    [
        "just a string",
        42,
        None,
        {"method": "add", "id": 1},
        {"jsonrpc": "2.0", "method": "add", "id": 1.5},
        {"jsonrpc": "2.0", "method": 7, "id": 1},
    ],
)
async def test_invalid_request(dispatcher, payload):
    resp = await dispatcher.handle_request(payload)
    assert resp.error.code == INVALID_REQUEST
    assert resp.error.message == "Invalid Request"
    assert isinstance(resp.error.cause, ValueError)
    assert resp.id is None
    assert resp.request is None


@pytest.mark.anyio
async def test_invalid_params(dispatcher):
    resp = await dispatcher.handle_request(call("add", {"a": 1, "c": 2}))
    assert resp.error.code == INVALID_PARAMS
    assert resp.error.message == "Invalid params"
    assert resp.error.cause is not None
    assert resp.id == 1


@pytest.mark.anyio
async def test_scalar_params(dispatcher):
    resp = await dispatcher.handle_request(call("add", 5))
    assert resp.error.code == INVALID_PARAMS


@pytest.mark.anyio
async def test_internal_error_hides_detail(dispatcher, caplog):
    with caplog.at_level(logging.ERROR, logger="gateway.dispatcher"):
        resp = await dispatcher.handle_request(call("boom"))
    d = resp.to_dict()
    assert d["error"] == {"code": INTERNAL_ERROR, "message": "Internal error"}
    assert "secret" not in str(d)
    assert isinstance(resp.error.cause, RuntimeError)
    assert "boom" in caplog.text


@pytest.mark.anyio
async def test_application_error_passes_through(dispatcher):
    resp = await dispatcher.handle_request(call("refuse"))
    assert resp.to_dict()["error"] == {"code": 42, "message": "refused", "data": {"reason": "policy"}}


@pytest.mark.anyio
async def test_context_assert_helper(dispatcher):
    ok = await dispatcher.handle_request(call("guarded", [1]))
    assert ok.result == 1

    bad = await dispatcher.handle_request(call("guarded", [2]))
    assert bad.error.code == ASSERTION_FAILED
    assert bad.error.info == {"actual": 2, "expected": 1}


@pytest.mark.anyio
async def test_context_exposes_call(dispatcher):
    resp = await dispatcher.handle_request(call("context", id=9), ctx="transport")
    assert resp.result == {"ctx": "transport", "id": 9, "method": "context"}


@pytest.mark.anyio
async def test_context_cleared_after_call(dispatcher):
    await dispatcher.handle_request(call("context"))
    with pytest.raises(RuntimeError):
        current_context()


@pytest.mark.anyio
async def test_child_logger_factory(caplog):
    registry = Registry()

    @registry.method()
    def chatty():
        current_context().log.warning("hello from handler")

    base = logging.getLogger("tests.calls")
    dispatcher = Dispatcher(registry, child_logger(base))
    with caplog.at_level(logging.WARNING, logger="tests.calls"):
        await dispatcher.handle_request(call("chatty", id="c1"))

    record = next(r for r in caplog.records if r.getMessage() == "hello from handler")
    assert record.rpc_method == "chatty"
    assert record.rpc_id == "c1"


@pytest.mark.anyio
async def test_default_logger_is_silent(caplog):
    registry = Registry()

    @registry.method()
    def chatty():
        current_context().log.error("should vanish")
        return "ok"

    with caplog.at_level(logging.DEBUG):
        resp = await Dispatcher(registry).handle_request(call("chatty"))
    assert resp.result == "ok"
    assert "should vanish" not in caplog.text


@pytest.mark.anyio
@pytest.mark.parametrize("value", [float("nan"), float("inf"), {1, 2}, datetime(2024, 1, 1)])
async def test_unencodable_result_is_internal_error(value, caplog):
    registry = Registry()
    registry.register("odd", lambda: value)

    with caplog.at_level(logging.ERROR, logger="gateway.dispatcher"):
        resp = await Dispatcher(registry).handle_request(call("odd", id=5))
    assert resp.to_dict() == {
        "jsonrpc": "2.0",
        "id": 5,
        "error": {"code": INTERNAL_ERROR, "message": "Internal error"},
    }
    assert isinstance(resp.error.cause, (TypeError, ValueError))
    assert "odd" in caplog.text


@pytest.mark.anyio
async def test_unencodable_error_data_is_dropped():
    registry = Registry()

    @registry.method()
    def strict():
        raise JsonRpcError(42, "refused", info={"when": datetime(2024, 1, 1)})

    resp = await Dispatcher(registry).handle_request(call("strict"))
    assert resp.to_dict()["error"] == {"code": 42, "message": "refused"}


@pytest.mark.anyio
async def test_failing_logger_factory_falls_back(caplog):
    registry = Registry()

    @registry.method()
    def chatty():
        current_context().log.info("still runs")
        return "ok"

    def broken_factory(request):
        raise RuntimeError("no logger today")

    with caplog.at_level(logging.ERROR, logger="gateway.dispatcher"):
        resp = await Dispatcher(registry, broken_factory).handle_request(call("chatty"))
    assert resp.result == "ok"
    assert "logger factory failed" in caplog.text


# ── Notifications ────────────────────────────────────────────────────


@pytest.mark.anyio
async def test_notification_success_is_invisible(dispatcher):
    outcome = await dispatcher.handle({"jsonrpc": "2.0", "method": "add", "params": [1, 1]})
    assert outcome.status == 200
    assert outcome.payload is None
    assert outcome.responses[0].result == 2


@pytest.mark.anyio
async def test_notification_failure_is_visible(dispatcher):
    outcome = await dispatcher.handle({"jsonrpc": "2.0", "method": "missing"})
    assert outcome.status == 200
    assert outcome.payload["id"] is None
    assert outcome.payload["error"]["code"] == METHOD_NOT_FOUND


# ── Batches ──────────────────────────────────────────────────────────


@pytest.mark.anyio
async def test_empty_batch(dispatcher):
    outcome = await dispatcher.handle([])
    assert outcome.status == 400
    assert outcome.payload == {
        "jsonrpc": "2.0",
        "id": None,
        "error": {"code": -32600, "message": "Invalid Request"},
    }


@pytest.mark.anyio
async def test_batch_filters_notifications(dispatcher):
    outcome = await dispatcher.handle(
        [
            {"jsonrpc": "2.0", "method": "nothing"},
            {"jsonrpc": "2.0", "id": 2, "method": "add", "params": [1, 1]},
        ]
    )
    assert outcome.status == 200
    assert outcome.payload == [{"jsonrpc": "2.0", "id": 2, "result": 2}]
    assert len(outcome.responses) == 2


@pytest.mark.anyio
async def test_batch_all_notifications(dispatcher):
    outcome = await dispatcher.handle(
        [{"jsonrpc": "2.0", "method": "nothing"}, {"jsonrpc": "2.0", "method": "add", "params": [1, 2]}]
    )
    assert outcome.status == 200
    assert outcome.payload is None


@pytest.mark.anyio
async def test_batch_mixed_failures(dispatcher):
    outcome = await dispatcher.handle(
        [
            call("add", [1, 2], id=1),
            1,
            call("boom", id=2),
            call("missing", id=3),
            call("add", {"zzz": 1}, id=4),
            {"jsonrpc": "2.0", "method": "boom"},
        ]
    )
    assert outcome.status == 200
    by_id = {}
    anonymous = []
    for item in outcome.payload:
        if item["id"] is None:
            anonymous.append(item)
        else:
            by_id[item["id"]] = item
    assert by_id[1]["result"] == 3
    assert by_id[2]["error"]["code"] == INTERNAL_ERROR
    assert by_id[3]["error"]["code"] == METHOD_NOT_FOUND
    assert by_id[4]["error"]["code"] == INVALID_PARAMS
    assert sorted(item["error"]["code"] for item in anonymous) == sorted([INVALID_REQUEST, INTERNAL_ERROR])


@pytest.mark.anyio
async def test_batch_runs_concurrently_and_matches_ids(dispatcher):
    items = [
        call("slow_echo", {"value": "slow", "delay": 0.3}, id="slow"),
        call("slow_echo", {"value": "fast", "delay": 0.0}, id="fast"),
    ]
    with anyio.fail_after(0.5):
        outcome = await dispatcher.handle(items + [call("slow_echo", ["x", 0.3], id="x")])
    by_id = {item["id"]: item["result"] for item in outcome.payload}
    assert by_id == {"slow": "slow", "fast": "fast", "x": "x"}


# ── Transport-level outcomes ─────────────────────────────────────────


def test_method_not_allowed_outcome():
    outcome = method_not_allowed()
    assert outcome.status == 405
    assert outcome.payload["error"] == {"code": INVALID_REQUEST, "message": "Method Not Allowed"}
    assert outcome.payload["id"] is None


def test_parse_error_outcome():
    outcome = parse_error(ValueError("bad"))
    assert outcome.status == 400
    assert outcome.payload["error"] == {"code": PARSE_ERROR, "message": "Parse error"}


def test_empty_batch_outcome():
    assert empty_batch().status == 400


class TestReadJson:
    def test_object(self):
        assert read_json(b'{"a": [1, 2]}') == {"a": [1, 2]}

    @pytest.mark.parametrize("body", [b"", b"not json", b"{", b"\xff\xfe", b"NaN", b"[Infinity]", b"[" * 100000])
    def test_rejects(self, body):
        with pytest.raises(ParseFailure):
            read_json(body)
