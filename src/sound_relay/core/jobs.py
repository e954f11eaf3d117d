"""Supervised background jobs."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, Set

logger = logging.getLogger("BackgroundJobs")


class BackgroundJobs:
    """
    Runs detached work (uploads, the startup clear request) on a thread pool.

    Every job's crash is logged and recorded before its future resolves, so nothing
    fails unobserved. Submission never blocks: the pool queue is unbounded and there
    is no backpressure on the caller.
    """

    def __init__(self, max_workers: int = 16, thread_name_prefix: str = "RelayJob"):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._lock = threading.Lock()
        self._futures: Set[Future] = set()
        self._in_flight = 0
        self._failures: list[tuple[str, BaseException]] = []

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        with self._lock:
            self._in_flight += 1
        try:
            future = self._executor.submit(self._run, name, fn, args, kwargs)
        except RuntimeError:
            with self._lock:
                self._in_flight -= 1
            raise
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)
        return future

    def _run(self, name: str, fn: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        logger.debug("Job %s started", name)
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            with self._lock:
                self._failures.append((name, e))
            logger.error("Job %s crashed: %s", name, e, exc_info=True)
            raise
        finally:
            with self._lock:
                self._in_flight -= 1
        logger.debug("Job %s finished", name)
        return result

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def failures(self) -> list[tuple[str, BaseException]]:
        with self._lock:
            return list(self._failures)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every job submitted so far is done. Returns False on timeout."""
        with self._lock:
            futures = list(self._futures)
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
