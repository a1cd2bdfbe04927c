import logging
from functools import wraps
from time import sleep
from typing import Any, Callable, TypeVar

from versioned_content.errors import TransientStorageError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def call_with_retries(
    func: Callable[..., T],
    *args: Any,
    attempts: int = 3,
    backoff: float = 0.05,
    **kwargs: Any,
) -> T:
    """Call ``func`` and retry it on transient storage failures.

    Only :class:`~versioned_content.errors.TransientStorageError` is retried,
    at most ``attempts`` times in total, sleeping ``backoff * attempt``
    seconds between attempts. Any other error is raised immediately.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except TransientStorageError as e:
            if attempt == attempts:
                logger.warning(
                    "Giving up on %s after %d attempts: %s",
                    getattr(func, '__name__', func), attempts, e,
                )
                raise
            logger.debug(
                "Transient storage error on attempt %d/%d of %s: %s",
                attempt, attempts, getattr(func, '__name__', func), e,
            )
            sleep(backoff * attempt)
    raise AssertionError("unreachable")  # pragma: nocover


def retrying(func: Callable[..., T]) -> Callable[..., T]:
    """Retry a method of an object exposing ``_config`` on transient storage
    errors."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        return call_with_retries(
            func, self, *args,
            attempts=self._config.storage_retries,
            backoff=self._config.retry_backoff,
            **kwargs,
        )

    return wrapper
