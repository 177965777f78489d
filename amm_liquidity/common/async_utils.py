from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .logging import log_event

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class CallOutcome(Generic[T]):
    value: T | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def error_message(self) -> str | None:
        return None if self.error is None else str(self.error)


async def capture_call(
    action: Callable[[], Awaitable[T] | T],
    *,
    logger: logging.Logger,
    event: str,
    message: str,
    level: str = "warning",
    **fields: Any,
) -> CallOutcome[T]:
    """Run ``action`` and keep either its result or the logged failure.

    Cancellation is never captured.
    """
    try:
        result = action()
        if inspect.isawaitable(result):
            result = await result
    except asyncio.CancelledError:
        raise
    except Exception as error:
        log_event(
            logger,
            level=level,
            event=event,
            message=message,
            error=str(error),
            error_type=type(error).__name__,
            **fields,
        )
        return CallOutcome(error=error)
    return CallOutcome(value=result)
