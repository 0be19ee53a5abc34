"""Provides utility functions and custom exceptions for the application.

This module contains common helper utilities that are used across various parts
of the peer_dashboard package.

Classes:
    EngineError: Raised when the transfer engine cannot be reached or the
                 requested torrent cannot be resolved.
    TerminalError: Raised when the terminal cannot be switched into (or out of)
                   full-screen mode.

Functions:
    retry: A decorator that retries a function call upon failure with
           configurable delay and backoff.
"""
import time
import logging
from functools import wraps
from typing import Callable, Any, TypeVar

# A generic TypeVar to preserve function signatures in the decorator
F = TypeVar('F', bound=Callable[..., Any])

def retry(tries: int = 2, delay: float = 5, backoff: float = 1) -> Callable[[F], F]:
    """Creates a decorator that retries a function upon failure.

    This decorator will re-invoke the decorated function if it raises an exception.
    It supports a configurable number of retries, an initial delay, and an
    exponential backoff factor.

    Args:
        tries: The maximum number of attempts to make.
        delay: The initial delay between retries in seconds.
        backoff: The factor by which the delay is multiplied after each failed
            attempt. A value of 1 results in a fixed delay.

    Returns:
        A decorator that can be applied to a function to make it resilient to
        transient failures.
    """
    def deco_retry(f: F) -> F:
        @wraps(f)
        def f_retry(*args: Any, **kwargs: Any) -> Any:
            _delay = delay
            for attempt in range(1, tries + 1):
                try:
                    return f(*args, **kwargs)
                except Exception as e:
                    if attempt == tries:
                        logging.error(f"Function '{f.__name__}' failed on the final attempt ({attempt}/{tries}): {e}")
                        raise

                    logging.warning(f"Function '{f.__name__}' failed with '{e}'. Attempt {attempt}/{tries}. "
                                    f"Retrying in {_delay} seconds...")
                    time.sleep(_delay)
                    _delay *= backoff
            raise RuntimeError("Exited retry loop unexpectedly.")
        return f_retry  # type: ignore
    return deco_retry


class EngineError(Exception):
    """Raised when the transfer engine cannot serve the requested torrent.

    Covers an unreachable client, a torrent that cannot be found or added, and
    any other failure that makes monitoring impossible from the start.
    """
    pass


class TerminalError(Exception):
    """Raised when the terminal cannot be put into full-screen mode.

    The terminal has already been restored on a best-effort basis by the time
    this exception reaches the caller.
    """
    pass
