from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional


class Debouncer:
    """
    Trailing-edge debounce over an async function.

    Every call restarts the timer. When `wait` seconds pass without a new
    call, the wrapped function runs once with the latest arguments and every
    caller that has been waiting since the previous run receives that result
    (or its exception).
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], wait: float) -> None:
        self._func = func
        self._wait = wait
        self._timer: Optional[asyncio.TimerHandle] = None
        self._waiters: List[asyncio.Future] = []
        self._args: tuple = ()
        self._kwargs: dict = {}

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        self._args = args
        self._kwargs = kwargs

        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._wait, self._fire)

        fut = loop.create_future()
        self._waiters.append(fut)
        return await fut

    def _fire(self) -> None:
        self._timer = None
        waiters, self._waiters = self._waiters, []
        task = asyncio.ensure_future(self._func(*self._args, **self._kwargs))
        task.add_done_callback(lambda t: self._resolve(t, waiters))

    @staticmethod
    def _resolve(task: asyncio.Future, waiters: List[asyncio.Future]) -> None:
        # Retrieved up front so an error is consumed even with no live waiter.
        exc = None if task.cancelled() else task.exception()
        for fut in waiters:
            if fut.done():
                continue
            if task.cancelled():
                fut.cancel()
            elif exc is not None:
                fut.set_exception(exc)
            else:
                fut.set_result(task.result())

    def cancel(self) -> None:
        """Drop the pending call; waiting callers are cancelled."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.cancel()

