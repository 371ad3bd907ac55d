"""Uniform invocation of stage and action handlers.

Handlers may be coroutine functions, plain callables, or plain callables that
return an awaitable. Plain callables run in the default thread pool with the
caller's context variables copied, so they never block the event loop.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
from collections.abc import Callable
from typing import Any

from hexflow.kernel.exceptions import HandlerExecutionError, StageTimeoutError


async def _call(handler: Callable[..., Any], args: tuple[Any, ...]) -> Any:
    if inspect.iscoroutinefunction(handler):
        return await handler(*args)

    ctx = contextvars.copy_context()
    result = await asyncio.get_running_loop().run_in_executor(
        None, ctx.run, handler, *args
    )
    if inspect.isawaitable(result):
        return await result
    return result


async def invoke_handler(
    identifier: str,
    handler: Callable[..., Any],
    args: tuple[Any, ...],
    timeout_ms: int | None = None,
    kind: str = "stage",
) -> Any:
    """Invoke ``handler(*args)``, enforcing ``timeout_ms`` when given.

    Raises
    ------
    StageTimeoutError
        If the handler did not finish within ``timeout_ms``
    HandlerExecutionError
        For any exception raised by the handler or its awaitable
    """
    if timeout_ms is None:
        try:
            return await _call(handler, args)
        except Exception as e:
            raise HandlerExecutionError(identifier, e) from e

    # A thread running a sync handler keeps going after expiry; only the wait ends
    scope = asyncio.timeout(timeout_ms / 1000)
    try:
        async with scope:
            return await _call(handler, args)
    except TimeoutError as e:
        if scope.expired():
            raise StageTimeoutError(identifier, timeout_ms, e, kind=kind) from e
        raise HandlerExecutionError(identifier, e) from e
    except Exception as e:
        raise HandlerExecutionError(identifier, e) from e
