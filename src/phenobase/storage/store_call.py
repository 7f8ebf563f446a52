"""
Store call execution with timeout and statistics.

Provides:
- Timeouts at the store-call boundary for clients that have none of their
  own (DuckDB, Polars)
- Per-call statistics (duration, state, error), the most recent of which
  are kept for the health endpoint
- Uniform translation of driver errors into StoreFailure
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Callable, Deque, List, Optional, TypeVar

from phenobase.errors import PhenobaseError, StoreFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECENT_CALLS = 100


class CallState(IntEnum):
    """Store call states."""
    PENDING = auto()     # Created but not started
    RUNNING = auto()     # Currently executing
    COMPLETED = auto()   # Finished successfully
    TIMEOUT = auto()     # Exceeded timeout
    FAILED = auto()      # Failed with error


@dataclass
class CallStats:
    """Statistics for one store call."""
    store: str
    operation: str
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    state: CallState = CallState.PENDING
    error: Optional[str] = None

    @property
    def duration_ms(self) -> float:
        """Call duration in milliseconds."""
        if self.start_time is None:
            return 0.0
        end = self.end_time or time.time()
        return (end - self.start_time) * 1000

    def start(self) -> None:
        self.start_time = time.time()
        self.state = CallState.RUNNING

    def complete(self) -> None:
        self.end_time = time.time()
        self.state = CallState.COMPLETED
        logger.debug(f"{self.store}.{self.operation} completed in {self.duration_ms:.1f}ms")
        record_call(self)

    def fail(self, error: Optional[str] = None, state: CallState = CallState.FAILED) -> None:
        self.end_time = time.time()
        self.state = state
        self.error = error
        record_call(self)

    def to_dict(self) -> dict:
        return {
            "store": self.store,
            "operation": self.operation,
            "duration_ms": self.duration_ms,
            "state": self.state.name,
            "error": self.error,
        }


_recent: Deque[CallStats] = deque(maxlen=RECENT_CALLS)
_recent_lock = threading.Lock()


def record_call(stats: CallStats) -> None:
    """Keep a finished call in the bounded recent-calls log."""
    with _recent_lock:
        _recent.append(stats)


def recent_calls(limit: Optional[int] = None, failed_only: bool = False) -> List[dict]:
    """
    Most recent finished store calls, oldest first.

    Args:
        limit: Keep only the last ``limit`` entries
        failed_only: Keep only calls that failed or timed out
    """
    with _recent_lock:
        calls = list(_recent)
    if failed_only:
        calls = [c for c in calls if c.state in (CallState.FAILED, CallState.TIMEOUT)]
    if limit is not None:
        calls = calls[-limit:] if limit > 0 else []
    return [c.to_dict() for c in calls]


def call_with_timeout(
    store: str,
    operation: str,
    func: Callable[..., T],
    timeout_seconds: Optional[float],
    *args,
    **kwargs,
) -> T:
    """
    Run a store call, bounding its duration.

    Only for reads: a timed-out call is abandoned, not stopped, so anything
    it commits afterwards is invisible to the caller.

    Args:
        store: Store name used in errors and logs
        operation: Operation name used in errors and logs
        func: The call to execute
        timeout_seconds: Maximum duration, None for no bound
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        The call's result

    Raises:
        StoreFailure: On timeout or on any driver error. PhenobaseError
            subclasses raised by ``func`` propagate unchanged.
    """
    stats = CallStats(store=store, operation=operation)
    stats.start()

    if timeout_seconds is None:
        try:
            result = func(*args, **kwargs)
        except PhenobaseError as e:
            stats.fail(str(e))
            raise
        except Exception as e:
            stats.fail(str(e))
            logger.error(f"{store}.{operation} failed: {e}", exc_info=True)
            raise StoreFailure(store, f"{operation} failed: {e}") from e
        stats.complete()
        return result

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func, *args, **kwargs)
    try:
        result = future.result(timeout=timeout_seconds)
    except FuturesTimeoutError:
        message = f"{operation} exceeded timeout of {timeout_seconds}s"
        stats.fail(message, CallState.TIMEOUT)
        logger.error(f"{store}.{message}")
        raise StoreFailure(store, message)
    except PhenobaseError as e:
        stats.fail(str(e))
        raise
    except Exception as e:
        stats.fail(str(e))
        logger.error(f"{store}.{operation} failed: {e}", exc_info=True)
        raise StoreFailure(store, f"{operation} failed: {e}") from e
    finally:
        # Do not wait for a timed-out worker
        executor.shutdown(wait=False, cancel_futures=True)

    stats.complete()
    return result
