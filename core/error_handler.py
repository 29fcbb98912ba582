"""Utility decorators and error handlers for consistent error handling."""
from __future__ import annotations

import functools
import time
from typing import Any, Callable, Optional, Type, TypeVar

from loguru import logger

from core.exceptions import StoreError, StorageUnavailableError
from core.result import Failure, Result, Success

T = TypeVar('T')


def handle_exceptions(
    logger_instance=logger,
    default_return: Optional[Any] = None,
    reraise: bool = False,
    message: Optional[str] = None
):
    """Decorator to log and swallow exceptions, returning a default value.

    Args:
        logger_instance: Logger to use for error logging
        default_return: Value to return on exception
        reraise: Whether to re-raise the exception after logging
        message: Custom error message prefix
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                error_msg = message or f"Error in {func.__name__}"
                logger_instance.error(f"{error_msg}: {e}")
                if reraise:
                    raise
                return default_return
        return wrapper
    return decorator


def as_result(
    func: Optional[Callable[..., T]] = None,
    *,
    wrap: Type[StoreError] = StorageUnavailableError,
):
    """Decorator converting a function's outcome into a ``Result``.

    Return values are wrapped in ``Success``. ``StoreError`` subclasses are
    passed through as ``Failure`` unchanged so their recovery category is
    preserved; any other exception is wrapped in ``wrap``.

    Usable bare (``@as_result``) or with arguments (``@as_result(wrap=...)``).
    """
    def decorator(fn: Callable[..., T]) -> Callable[..., Result[T, StoreError]]:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> Result[T, StoreError]:
            try:
                return Success(fn(*args, **kwargs))
            except StoreError as e:
                return Failure(e)
            except Exception as e:
                wrapped = wrap(f"{fn.__name__} failed: {e}")
                wrapped.__cause__ = e
                return Failure(wrapped)
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def log_execution_time(logger_instance=logger, level: str = "DEBUG"):
    """Decorator to log function execution time.

    Args:
        logger_instance: Logger to use
        level: Log level (DEBUG, INFO, etc.)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start_time) * 1000.0
                log_func = getattr(logger_instance, level.lower(), logger_instance.debug)
                log_func(f"{func.__name__} executed in {elapsed_ms:.2f}ms")
        return wrapper
    return decorator
