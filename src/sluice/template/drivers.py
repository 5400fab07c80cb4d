"""Drivers for render generators.

Every render step in sluice is a generator. A step hands work to its
driver by yielding one of:

- another generator: driven to completion, its return value is sent back;
- an awaitable: awaited by ``to_async``; ``to_sync`` refuses it;
- anything else: sent straight back unchanged.

Exceptions raised inside a child are thrown into the parent at its
``yield``, so ``try``/``except`` in tag code behaves as if the child had
been called directly. Tags are written once and run under both drivers.
"""

from __future__ import annotations

import inspect
from collections.abc import Generator
from typing import Any

from sluice.environment.exceptions import ErrorCode, TemplateRuntimeError


def to_sync(gen: Any) -> Any:
    """Drive ``gen`` without an event loop and return its result.

    Raises:
        TemplateRuntimeError: If any step yields an awaitable.
    """
    if not isinstance(gen, Generator):
        if inspect.isawaitable(gen):
            _reject(gen)
        return gen
    value: Any = None
    error: BaseException | None = None
    while True:
        try:
            step = gen.throw(error) if error is not None else gen.send(value)
        except StopIteration as stop:
            return stop.value
        error = None
        try:
            if isinstance(step, Generator):
                value = to_sync(step)
            elif inspect.isawaitable(step):
                _reject(step)
            else:
                value = step
        except Exception as exc:
            error = exc


async def to_async(gen: Any) -> Any:
    """Drive ``gen`` on the running event loop and return its result."""
    if not isinstance(gen, Generator):
        if inspect.isawaitable(gen):
            return await gen
        return gen
    value: Any = None
    error: BaseException | None = None
    while True:
        try:
            step = gen.throw(error) if error is not None else gen.send(value)
        except StopIteration as stop:
            return stop.value
        error = None
        try:
            if isinstance(step, Generator):
                value = await to_async(step)
            elif inspect.isawaitable(step):
                value = await step
            else:
                value = step
        except Exception as exc:
            error = exc


def _reject(awaitable: Any) -> None:
    if inspect.iscoroutine(awaitable):
        awaitable.close()
    raise TemplateRuntimeError(
        "async value in synchronous render; use render_async",
        code=ErrorCode.ASYNC_IN_SYNC,
    )
