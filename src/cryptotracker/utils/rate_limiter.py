import asyncio
import contextlib
import types
from collections.abc import AsyncGenerator
from typing import Self

from loguru import logger


class RequestThrottle:
    """Bounds a fan-out of asynchronous requests.

    Two limits are applied to every request made under `acquire()`:

    - a concurrency cap: at most `max_concurrency` requests are in flight at
      once. Slots are tokens in an `asyncio.Queue` that are handed back when
      the request finishes.
    - an optional rate limit using the token bucket algorithm: at most
      `rate_limit` requests start per `period_sec`. Rate tokens are consumed,
      and a background task tops the bucket up every period.

    The throttle is used as an async context manager so that the refill task
    is started and stopped together with the work it throttles.

    Usage:
        throttle = RequestThrottle(max_concurrency=8, rate_limit=10)
        async with throttle:
            async with throttle.acquire():
                await make_api_call()
    """

    def __init__(
        self,
        max_concurrency: int,
        rate_limit: int | None = None,
        period_sec: float = 1.0,
    ) -> None:
        """Initializes the throttle.

        Args:
            max_concurrency: The maximum number of requests in flight at once.
            rate_limit: The maximum number of requests started per period, or
                None to apply only the concurrency cap.
            period_sec: The rate limit period in seconds.
        """
        if not isinstance(max_concurrency, int) or max_concurrency <= 0:
            err_msg = "Max concurrency must be a positive integer."
            raise ValueError(err_msg)
        if rate_limit is not None and (
            not isinstance(rate_limit, int) or rate_limit <= 0
        ):
            err_msg = "Rate limit must be a positive integer or None."
            raise ValueError(err_msg)
        if not isinstance(period_sec, int | float) or period_sec <= 0:
            err_msg = "Period must be a positive number."
            raise ValueError(err_msg)

        self.max_concurrency = max_concurrency
        self.rate_limit = rate_limit
        self.period_sec = period_sec
        self._slots: asyncio.Queue[None] = asyncio.Queue(maxsize=max_concurrency)
        self._tokens: asyncio.Queue[None] | None = None
        self._refill_task: asyncio.Task[None] | None = None

        for _ in range(max_concurrency):
            self._slots.put_nowait(None)

        if rate_limit is not None:
            self._tokens = asyncio.Queue(maxsize=rate_limit)
            for _ in range(rate_limit):
                self._tokens.put_nowait(None)

    @property
    def in_flight(self) -> int:
        """The number of requests currently holding a concurrency slot."""
        return self.max_concurrency - self._slots.qsize()

    async def _refiller(self) -> None:
        """The background task that refills the rate token bucket periodically."""
        tokens = self._tokens
        rate_limit = self.rate_limit
        if tokens is None or rate_limit is None:
            return
        try:
            while True:
                await asyncio.sleep(self.period_sec)
                # Only consumed tokens are replaced; the bucket never exceeds
                # its capacity.
                for _ in range(rate_limit - tokens.qsize()):
                    tokens.put_nowait(None)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"FATAL: Request throttle refill task failed: {e}")

    async def start(self) -> None:
        """Starts the background token refiller task if rate limiting is on."""
        if self._tokens is None:
            return
        if self._refill_task is None or self._refill_task.done():
            self._refill_task = asyncio.create_task(self._refiller())

    async def stop(self) -> None:
        """Stops the background token refiller task gracefully."""
        if self._refill_task and not self._refill_task.done():
            self._refill_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._refill_task
        self._refill_task = None

    @contextlib.asynccontextmanager
    async def acquire(self) -> AsyncGenerator[None, None]:
        """Waits for a concurrency slot and a rate token, then holds the slot.

        The slot is returned when the block exits, even on error or
        cancellation. The rate token is not returned.
        """
        await self._slots.get()
        try:
            if self._tokens is not None:
                await self._tokens.get()
            yield
        finally:
            self._slots.put_nowait(None)

    async def __aenter__(self) -> Self:
        """Starts the refiller task when entering the context."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        """Stops the refiller task when exiting the context."""
        await self.stop()
