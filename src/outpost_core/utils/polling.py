"""Deadline-bounded polling."""

import asyncio
from typing import Awaitable, Callable, TypeVar

from outpost_core.exceptions import DeadlineExceededError
from outpost_core.observability import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


async def poll_until(
    probe: Callable[[], Awaitable[T | None]],
    *,
    what: str,
    timeout: float,
    interval: float,
) -> T:
    """Call ``probe`` until it returns a non-None value or the deadline passes.

    A probe that raises counts as "not ready yet"; the error is kept and
    attached to the final ``DeadlineExceededError``. Each probe call is
    itself bounded by the time left, so a hanging probe cannot push the
    wait past the deadline.

    Args:
        probe: Coroutine factory returning a value when ready, None otherwise
        what: Human-readable name used in logs and the failure
        timeout: Total deadline in seconds
        interval: Pause between attempts in seconds

    Returns:
        The first non-None probe result

    Raises:
        DeadlineExceededError: If the deadline passes first
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    last_error: BaseException | None = None
    attempt = 0

    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            break

        attempt += 1
        try:
            result = await asyncio.wait_for(probe(), timeout=remaining)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            logger.info(
                f"{what} not ready yet",
                context={"attempt": attempt, "reason": str(e)[:200]},
            )
        else:
            if result is not None:
                return result
            logger.debug(f"{what} not ready yet", context={"attempt": attempt})

        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        await asyncio.sleep(min(interval, remaining))

    raise DeadlineExceededError(what, timeout, last_error)
