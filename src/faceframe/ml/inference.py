"""Bridge between the async HTTP layer and the synchronous detection pipeline.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> DetectionPipeline.run

Requests that cannot get a slot within SEMAPHORE_TIMEOUT_SECONDS raise
TimeoutError, which the routes turn into a 503.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from faceframe.ml.pipeline import DetectionPipeline, DetectionResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Bounds the number of pipeline runs in flight and tracks queueing."""

    def __init__(self, max_concurrent: int, timeout: float = SEMAPHORE_TIMEOUT_SECONDS) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent,
            thread_name_prefix="face-detect",
        )
        self._timeout = timeout
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run a synchronous function on the worker pool once a slot is free.

        Raises:
            TimeoutError: If no slot frees up within the timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self._timeout)
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

    async def detect(self, pipeline: DetectionPipeline, data: bytes) -> DetectionResult:
        """Run one image through the pipeline on the worker pool."""
        return await self.run(pipeline.run, data)

    @property
    def active_count(self) -> int:
        """Number of pipeline runs currently executing."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the worker threads."""
        self._executor.shutdown(wait=True)
        logger.info("Inference pool shut down")
