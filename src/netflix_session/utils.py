"""Utility functions and decorators for netflix_session."""

import logging
from functools import wraps
from typing import TypeVar, Callable

from .exceptions import OperationError, describe, error_kind

logger = logging.getLogger(__name__)

T = TypeVar('T')


def session_operation(name: str | None = None, write: bool = False):
    """
    Decorator that makes a client method an orchestration boundary.

    The method runs under the client's session guard (shared for reads,
    exclusive when ``write`` is set). Any exception is logged with its
    traceback and replaced by an ``OperationError`` that keeps only the
    error kind, ``UNEXPECTED`` outside the taxonomy. Nothing is retried.

    Args:
        name: Operation name used in logs and errors (defaults to the method name)
        write: Whether the method mutates session context

    Example:
        @session_operation(write=True)
        def switch_profile(self, guid):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        operation = name or func.__name__

        @wraps(func)
        def wrapper(self, *args, **kwargs) -> T:
            guard = self.guard.write() if write else self.guard.read()
            with guard:
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    logger.error(f"{operation} failed: {e!r}", exc_info=True)
                    raise OperationError(describe(operation, e), operation, error_kind(e)) from None

        return wrapper
    return decorator


def split_avatar_id(avatar_name: str) -> str:
    """
    Avatar id embedded in an avatar name, e.g. 'icon26' -> '26'.

    Raises:
        ValueError: the name has no 'icon' marker
    """
    _, marker, avatar_id = avatar_name.partition("icon")
    if not marker or not avatar_id:
        raise ValueError(f"Unexpected avatar name: {avatar_name!r}")
    return avatar_id
