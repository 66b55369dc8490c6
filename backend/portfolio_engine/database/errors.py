"""
Driver error translation for repositories.

Repository methods decorated with @translate_driver_errors surface storage
failures as PersistenceError instead of raw pymongo exceptions. Errors a
repository handles itself (e.g. DuplicateKeyError on a racing insert) are
caught inside the method and never reach the decorator.
"""

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import structlog
from pymongo.errors import PyMongoError

from ..core.exceptions import PersistenceError

logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")


def translate_driver_errors(
    func: Callable[P, Awaitable[R]],
) -> Callable[P, Awaitable[R]]:
    """Wrap an async repository method so PyMongoError becomes PersistenceError."""

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error(
                "Storage operation failed",
                operation=func.__qualname__,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceError(
                f"Storage operation failed: {func.__qualname__}",
                operation=func.__qualname__,
                original_error=type(e).__name__,
            ) from e

    return wrapper
