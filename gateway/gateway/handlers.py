"""Example RPC methods.

All methods are registered on the module-level ``registry`` which the
server serves by default.  ``math.*`` methods live in their own
namespaced registry and are included into it.
"""

from __future__ import annotations

import logging

import anyio

from gateway.context import current_context
from gateway.registry import Registry
from wire.errors import rpc_assert, rpc_assert_equal

log = logging.getLogger(__name__)

registry = Registry()
math_methods = Registry("math")

# ── Top-level methods ────────────────────────────────────────────────


@registry.method()
async def echo(value):
    """Return the argument unchanged."""
    return value


@registry.method()
async def add(a, b):
    return a + b


@registry.method("sum")
def sum_(*values):
    return sum(values)


@registry.method()
async def ping(delay=0):
    """Answer ``"pong"``, optionally after sleeping *delay* seconds."""
    if delay:
        await anyio.sleep(delay)
    return "pong"


@registry.method()
async def notify(message=None):
    """Fire-and-forget: log *message* against the calling request."""
    call = current_context()
    call.log.info("notify: %s", message)
    return None


@registry.method()
async def whoami():
    """Describe the call being handled."""
    call = current_context()
    return {"id": call.request.id, "method": call.request.method}


# ── math.* ───────────────────────────────────────────────────────────


@math_methods.method()
def subtract(minuend, subtrahend):
    return minuend - subtrahend


@math_methods.method()
def divide(dividend, divisor):
    rpc_assert(divisor != 0, "division by zero")
    return dividend / divisor


@math_methods.method()
def check(value, expected):
    """Fail with both values attached unless they are equal."""
    rpc_assert_equal(value, expected)
    return True


registry.include(math_methods)
