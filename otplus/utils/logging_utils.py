"""Per-user log context and call tracing for engine runs."""

import functools
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

_local = threading.local()


def _current_fields() -> Dict[str, Any]:
    return getattr(_local, "fields", {})


class LogContext:
    """
    Attach fields such as ``user_id`` to every record logged inside the block.

    Fields live in thread-local storage and are copied onto records by the
    filter that configure_logging() installs on its handlers. Leaving the
    block restores the fields that were active before it.

    Example:
        with LogContext(user_id="user-1"):
            logger.debug("Allocating week")  # record carries user_id
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._saved: Dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._saved = _current_fields()
        _local.fields = {**self._saved, **self.fields}
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _local.fields = self._saved


class _ContextFilter(logging.Filter):
    """Copies the active LogContext fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _current_fields().items():
            setattr(record, key, value)
        return True


def log_function_call(
    func: Optional[Callable] = None, *, level: str = "DEBUG", timed: bool = False
) -> Callable:
    """
    Log entry to and exit from the decorated function.

    Exceptions are logged with their traceback and re-raised. Arguments are
    not logged since entry lists can be large.

    Args:
        func: Function to decorate (bare ``@log_function_call`` form)
        level: Level name for the entry and exit messages
        timed: Append elapsed milliseconds to the exit message

    Example:
        @log_function_call(level="INFO", timed=True)
        def compute_analysis(entries, config):
            ...
    """

    def decorator(f: Callable) -> Callable:
        log_level = getattr(logging, level.upper())
        logger = logging.getLogger(f.__module__)

        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            logger.log(log_level, f"Entering {f.__name__}")
            started = time.perf_counter()
            try:
                result = f(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Exception in {f.__name__}: {type(e).__name__}: {e}",
                    exc_info=True,
                )
                raise

            suffix = f" after {(time.perf_counter() - started) * 1000:.1f} ms" if timed else ""
            logger.log(log_level, f"Exiting {f.__name__}{suffix}")
            return result

        return wrapper

    if func is None:
        return decorator
    return decorator(func)
