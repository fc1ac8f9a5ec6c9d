"""
Batch Symbol Processing

Runs independent isolations on a bounded thread pool (numpy/OpenCV release
the GIL for the heavy passes). Each batch carries a generation token; a
result is handed to the sink only if its batch is still the latest one when
the result completes, so a superseded symbol set never overwrites newer output.

Per-symbol wall-clock budget: a run that exceeds it is reported as a
FALLBACK_ORIGINAL result and its eventual output is discarded.
"""

import os
import time
import threading
import concurrent.futures
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from symbol_isolation.core.config import Settings, settings as default_settings
from symbol_isolation.core.exceptions import PipelineStageError, PipelineTimeoutError
from symbol_isolation.core.logging import LogContext, get_logger
from symbol_isolation.core.metrics import (
    isolation_active_batches,
    record_isolation_result,
    record_stale_result,
)
from symbol_isolation.engines.isolation.schemas import (
    BoundingBox,
    ExtractionResult,
    IsolationConfig,
    IsolationState,
    RasterImage,
)
from symbol_isolation.pipeline.orchestrator import SymbolIsolationPipeline

logger = get_logger(__name__)

ResultSink = Callable[[str, ExtractionResult], None]


@dataclass(frozen=True)
class IsolationRequest:
    symbol_id: str
    image: RasterImage
    force: bool = False
    overrides: Optional[Dict[str, Any]] = None


@dataclass
class BatchResult:
    generation: int
    results: Dict[str, ExtractionResult] = field(default_factory=dict)
    committed: List[str] = field(default_factory=list)
    discarded: List[str] = field(default_factory=list)

    @property
    def stale(self) -> bool:
        return bool(self.discarded)


class _Job:
    __slots__ = ("request", "config", "started_at")

    def __init__(self, request: IsolationRequest, config: IsolationConfig):
        self.request = request
        self.config = config
        self.started_at: Optional[float] = None


class SymbolBatchProcessor:
    """Bounded worker pool with generation-token commits."""

    def __init__(
        self,
        pipeline: Optional[SymbolIsolationPipeline] = None,
        max_workers: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.pipeline = pipeline or SymbolIsolationPipeline(settings=self.settings)
        self.max_workers = max_workers or self.settings.ISOLATION_MAX_WORKERS or os.cpu_count() or 1
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else self.settings.ISOLATION_TIMEOUT_SECONDS
        )

        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="symbol-isolation"
        )
        self._generation = 0
        # Reentrant: a sink may start the next batch from inside a commit
        self._lock = threading.RLock()

    # =========================================================================
    # Generation tokens
    # =========================================================================

    def begin_batch(self) -> int:
        """Allocate a new generation; every older batch becomes stale."""
        with self._lock:
            self._generation += 1
            return self._generation

    @property
    def current_generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    # =========================================================================
    # Processing
    # =========================================================================

    def process_batch(
        self,
        requests: Sequence[IsolationRequest],
        sink: Optional[ResultSink] = None,
        generation: Optional[int] = None,
    ) -> BatchResult:
        """
        Isolate every request concurrently and block until all are resolved.

        Args:
            requests: Symbols to process; symbol_id must be unique in a batch
            sink: Called as sink(symbol_id, result) for results of a current batch
            generation: Token from begin_batch(); a new one is allocated if omitted

        Raises:
            InvalidConfigError: a request carries invalid overrides (nothing is submitted)
            ValueError: duplicate symbol ids
        """
        ids = [req.symbol_id for req in requests]
        if len(set(ids)) != len(ids):
            raise ValueError("symbol_id values must be unique within a batch")

        jobs = [_Job(req, self.pipeline.resolve_config(req.overrides)) for req in requests]
        if generation is None:
            generation = self.begin_batch()

        batch = BatchResult(generation=generation)
        logger.info(
            "batch_started",
            generation=generation,
            symbols=len(jobs),
            max_workers=self.max_workers
        )

        isolation_active_batches.inc()
        try:
            pending = {self._executor.submit(self._run, job): job for job in jobs}
            poll_interval = min(0.05, self.timeout_seconds)

            while pending:
                done, _ = concurrent.futures.wait(
                    pending,
                    timeout=poll_interval,
                    return_when=concurrent.futures.FIRST_COMPLETED
                )
                for future in done:
                    job = pending.pop(future)
                    self._commit(batch, sink, job.request.symbol_id, self._collect(future, job))

                now = time.monotonic()
                for future, job in list(pending.items()):
                    if job.started_at is not None and now - job.started_at > self.timeout_seconds:
                        pending.pop(future)
                        future.cancel()
                        self._commit(batch, sink, job.request.symbol_id, self._timed_out(job))
        finally:
            isolation_active_batches.dec()

        logger.info(
            "batch_completed",
            generation=generation,
            committed=len(batch.committed),
            discarded=len(batch.discarded)
        )
        return batch

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    # =========================================================================
    # Internals
    # =========================================================================

    def _run(self, job: _Job) -> ExtractionResult:
        job.started_at = time.monotonic()
        return self.pipeline.isolate_with_config(
            job.request.image,
            job.config,
            force=job.request.force,
            symbol_id=job.request.symbol_id,
        )

    def _collect(self, future: concurrent.futures.Future, job: _Job) -> ExtractionResult:
        try:
            return future.result()
        except Exception as e:
            # isolate_with_config converts stage errors itself; this covers the worker plumbing
            error = PipelineStageError(
                f"{type(e).__name__}: {e}", stage="worker", symbol_id=job.request.symbol_id
            )
            return self._fallback_result(job, error)

    def _timed_out(self, job: _Job) -> ExtractionResult:
        error = PipelineTimeoutError(self.timeout_seconds, symbol_id=job.request.symbol_id, stage="isolation")
        return self._fallback_result(job, error)

    @staticmethod
    def _fallback_result(job: _Job, error) -> ExtractionResult:
        image = job.request.image
        with LogContext(symbol_id=job.request.symbol_id):
            logger.warning(
                "isolation_fallback",
                error=error.message,
                error_type=type(error).__name__,
                failed_stage=error.stage
            )
        record_isolation_result(IsolationState.FALLBACK_ORIGINAL.value)
        return ExtractionResult(
            image=image,
            bbox=BoundingBox.full_frame(image.width, image.height),
            state=IsolationState.FALLBACK_ORIGINAL,
            diagnostic=error.to_dict(),
        )

    def _commit(
        self,
        batch: BatchResult,
        sink: Optional[ResultSink],
        symbol_id: str,
        result: ExtractionResult,
    ):
        batch.results[symbol_id] = result

        # Check and hand-off under the lock so begin_batch() cannot interleave
        with self._lock:
            current = batch.generation == self._generation
            if current and sink is not None:
                sink(symbol_id, result)

        if current:
            batch.committed.append(symbol_id)
        else:
            batch.discarded.append(symbol_id)
            record_stale_result()
            logger.info(
                "batch_result_discarded",
                symbol_id=symbol_id,
                generation=batch.generation,
                latest_generation=self._generation
            )
