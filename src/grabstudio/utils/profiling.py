"""
Timing of engine calls and frame rendering.

Only the latest timing of each operation is kept; the information summary
reports the most recent engine operation and its cost. Operations slower
than their target are logged as warnings.
"""

import functools
import itertools
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger("grabstudio.profiling")


@dataclass(frozen=True)
class OperationTiming:
    operation: str
    duration_ms: float
    sequence: int
    failed: bool = False


class PerformanceProfiler:
    """Process-wide record of the latest timing per operation."""

    # Warning thresholds in milliseconds
    TARGETS = {
        "image_load": 1000,
        "engine_initialize": 200,
        "fit_gmms": 1500,
        "refine_once": 2000,
        "build_images": 1000,
        "render_frame": 100,
        "export_frame": 200,
    }

    _instance: Optional['PerformanceProfiler'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._latest = {}
            cls._instance._sequence = itertools.count()
        return cls._instance

    @classmethod
    def get_instance(cls) -> 'PerformanceProfiler':
        return cls()

    @property
    def timings(self) -> Dict[str, OperationTiming]:
        """Latest timing per operation name."""
        return dict(self._latest)

    @contextmanager
    def measure(self, operation: str):
        """Time the enclosed block; the timing is recorded even if it raises."""
        started = time.perf_counter()
        failed = False
        try:
            yield
        except Exception:
            failed = True
            raise
        finally:
            self._record(operation, (time.perf_counter() - started) * 1000, failed)

    def last(self, *operations: str) -> Optional[OperationTiming]:
        """
        Most recent timing, optionally restricted to the given operations.

        Returns:
            None if none of the operations has run since the last clear()
        """
        names = operations or tuple(self._latest)
        candidates = [self._latest[name] for name in names if name in self._latest]
        if not candidates:
            return None
        return max(candidates, key=lambda timing: timing.sequence)

    def clear(self):
        self._latest.clear()

    def _record(self, operation: str, duration_ms: float, failed: bool):
        self._latest[operation] = OperationTiming(
            operation, duration_ms, next(self._sequence), failed
        )
        target = self.TARGETS.get(operation)
        if target and duration_ms > target:
            logger.warning(f"{operation} took {duration_ms:.1f}ms (target: {target}ms)")
        else:
            logger.debug(f"{operation}: {duration_ms:.1f}ms")


def timed(operation: str = None):
    """
    Decorator recording the duration of every call.

    Usage:
        @timed("refine_once")
        def refine_once(self):
            ...
    """
    def decorator(func: Callable) -> Callable:
        name = operation or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with PerformanceProfiler.get_instance().measure(name):
                return func(*args, **kwargs)

        return wrapper
    return decorator


def profile_block(operation: str):
    """Context manager timing a block under the given operation name."""
    return PerformanceProfiler.get_instance().measure(operation)
