"""Batch detection orchestrator.

Runs detection over a working set of jobs with bounded concurrency:
- Round-based dispatch: up to ``concurrency_limit`` queued jobs are started
  together and all awaited before the next round is selected
- Cooperative pause and cancel, observed between rounds
- Per-job failure isolation: one failed detection only marks that job
- Check-before-commit: results of jobs removed from the working set while
  in flight are dropped

The job list is owned by the caller and may be edited while a run is in
progress; only one run is active per orchestrator at a time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, AsyncIterator, Awaitable, Callable, Iterable, List, NamedTuple, Optional, Sequence, Tuple,
)

import numpy as np

from .config import MAX_CONCURRENCY, AppConfig, BatchConfig, ScanConfig
from .detector import SliceDetector, generate_grid_slices
from .detector.utils import Region
from .exceptions import RecognizerError
from .image_utils import as_rgba, buffer_size, encode_for_upload, load_image
from .recognizer import regions_from_text

log = logging.getLogger("Batch")


class JobStatus(str, Enum):
    IDLE = "idle"
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class SliceMode(str, Enum):
    GRID = "GRID"
    AI_AUTO = "AI_AUTO"
    SCAN = "SCAN"
    MANUAL = "MANUAL"


@dataclass
class DetectionJob:
    """One item of the working set."""
    item_id: str
    status: JobStatus = JobStatus.IDLE
    mode: SliceMode = SliceMode.SCAN
    config: Optional[ScanConfig] = None  # Per-item scan settings (batch default if None)
    source: Any = None                   # Image path or RGBA array
    regions: List[Region] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class JobOutcome:
    """Committed result of one job."""
    item_id: str
    status: JobStatus
    regions: List[Region]
    error: Optional[str] = None
    round_index: int = 0
    elapsed_ms: float = 0.0


@dataclass
class OrchestratorRun:
    """State of one run, created at start and torn down at the end."""
    concurrency_limit: int
    paused: bool = False
    cancelled: bool = False
    active: bool = True
    rounds: int = 0
    committed: int = 0


DetectFn = Callable[[DetectionJob], Awaitable[Sequence[Region]]]
Listener = Callable[[DetectionJob], None]


def find_job(jobs: Iterable[DetectionJob], item_id: str) -> Optional[DetectionJob]:
    for job in jobs:
        if job.item_id == item_id:
            return job
    return None


class BatchOrchestrator:
    """Cooperative, cancellable, pausable batch runner.

    Usage::

        orchestrator = BatchOrchestrator()
        async for outcome in orchestrator.run(jobs, 2, detect_fn):
            ...

    Listeners added with :meth:`add_listener` are called on every job
    status transition.
    """

    def __init__(self, config: Optional[BatchConfig] = None):
        self.config = config or BatchConfig()
        self._run: Optional[OrchestratorRun] = None
        self._listeners: List[Listener] = []

    # ---- control -------------------------------------------------------

    @property
    def current_run(self) -> Optional[OrchestratorRun]:
        return self._run

    @property
    def is_active(self) -> bool:
        return self._run is not None and self._run.active

    @property
    def is_paused(self) -> bool:
        return self._run is not None and self._run.paused

    def pause(self) -> None:
        """Hold the run at the next round boundary."""
        if self._run is not None:
            self._run.paused = True
            log.info("Paused")

    def resume(self) -> None:
        if self._run is not None:
            self._run.paused = False
            log.info("Resumed")

    def cancel(self) -> None:
        """Stop the run; the round in flight is discarded."""
        if self._run is not None:
            self._run.cancelled = True
            log.info("Cancel requested")

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ---- run loop ------------------------------------------------------

    async def run(
        self,
        jobs: List[DetectionJob],
        concurrency_limit: Optional[int],
        detect_fn: DetectFn,
    ) -> AsyncIterator[JobOutcome]:
        """Process every queued job, yielding outcomes as they are committed.

        Starting while a run is active does nothing.

        Args:
            jobs: Working set, shared with the caller
            concurrency_limit: Jobs per round, 1-5 (config value if None)
            detect_fn: Coroutine function returning the regions of a job
        """
        if self.is_active:
            log.warning("A run is already active; start request ignored")
            return

        limit = self._clamp_limit(
            self.config.concurrency if concurrency_limit is None else concurrency_limit
        )
        run = OrchestratorRun(concurrency_limit=limit)
        self._run = run
        log.info(f"Run started (concurrency={limit})")

        in_flight: List[DetectionJob] = []
        try:
            while True:
                if run.cancelled:
                    log.info("Cancelled")
                    break

                if run.paused:
                    await self._wait_while_paused(run)
                    if run.cancelled:
                        log.info("Cancelled while paused")
                        break

                batch = [job for job in jobs if job.status == JobStatus.QUEUED][:limit]
                if not batch:
                    break

                round_index = run.rounds
                run.rounds += 1
                in_flight = batch
                for job in batch:
                    self._set_status(job, JobStatus.PROCESSING)

                outcomes = await asyncio.gather(
                    *(self._detect_one(job, detect_fn, round_index) for job in batch)
                )

                if run.cancelled:
                    self._requeue(jobs, in_flight)
                    in_flight = []
                    log.info(f"Cancelled; discarded {len(batch)} results of round {round_index}")
                    break

                # The whole round is committed before the consumer sees any of it
                committed: List[JobOutcome] = []
                for outcome in outcomes:
                    current = find_job(jobs, outcome.item_id)
                    if current is None:
                        log.debug(f"{outcome.item_id} removed during detection; result dropped")
                        continue
                    self._commit(current, outcome)
                    run.committed += 1
                    committed.append(outcome)
                in_flight = []

                for outcome in committed:
                    yield outcome
        finally:
            if in_flight:
                # Interrupted while detecting (task cancelled or generator closed)
                self._requeue(jobs, in_flight)
            run.active = False
            run.paused = False
            if self._run is run:
                self._run = None
            log.info(f"Run finished: {run.committed} committed in {run.rounds} rounds")

    async def run_to_completion(
        self,
        jobs: List[DetectionJob],
        concurrency_limit: Optional[int],
        detect_fn: DetectFn,
    ) -> List[JobOutcome]:
        """Drive :meth:`run` and collect its outcomes."""
        return [outcome async for outcome in self.run(jobs, concurrency_limit, detect_fn)]

    # ---- internals -----------------------------------------------------

    @staticmethod
    def _clamp_limit(limit: int) -> int:
        clamped = max(1, min(MAX_CONCURRENCY, int(limit)))
        if clamped != limit:
            log.warning(f"Concurrency {limit} out of range, using {clamped}")
        return clamped

    async def _wait_while_paused(self, run: OrchestratorRun) -> None:
        while run.paused and not run.cancelled:
            await asyncio.sleep(self.config.pause_poll_interval)

    async def _detect_one(self, job: DetectionJob, detect_fn: DetectFn, round_index: int) -> JobOutcome:
        start = time.perf_counter()
        try:
            regions = list(await detect_fn(job))
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            log.warning(f"Detection failed for {job.item_id}: {e}")
            return JobOutcome(
                item_id=job.item_id,
                status=JobStatus.ERROR,
                regions=[],
                error=str(e) or type(e).__name__,
                round_index=round_index,
                elapsed_ms=elapsed_ms,
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        log.debug(f"{job.item_id}: {len(regions)} regions ({elapsed_ms:.0f} ms)")
        return JobOutcome(
            item_id=job.item_id,
            status=JobStatus.DONE,
            regions=regions,
            round_index=round_index,
            elapsed_ms=elapsed_ms,
        )

    def _requeue(self, jobs: List[DetectionJob], round_jobs: List[DetectionJob]) -> None:
        """Return unfinished jobs of a round to the queue, skipping removed ones."""
        for job in round_jobs:
            if job.status == JobStatus.PROCESSING and find_job(jobs, job.item_id) is not None:
                self._set_status(job, JobStatus.QUEUED)

    def _commit(self, job: DetectionJob, outcome: JobOutcome) -> None:
        if outcome.status == JobStatus.DONE:
            job.regions = list(outcome.regions)
            job.error = None
        else:
            job.error = outcome.error
        self._set_status(job, outcome.status)

    def _set_status(self, job: DetectionJob, status: JobStatus) -> None:
        job.status = status
        for listener in list(self._listeners):
            try:
                listener(job)
            except Exception:
                log.exception(f"Listener failed on {job.item_id} -> {status.value}")


# ---- working-set helpers ---------------------------------------------------

def enqueue(
    jobs: Iterable[DetectionJob],
    item_ids: Iterable[str],
    mode: SliceMode,
    config: Optional[ScanConfig] = None,
) -> int:
    """Queue jobs for a detection mode.

    Args:
        jobs: Working set
        item_ids: Jobs to queue
        mode: SCAN or AI_AUTO
        config: Scan settings copied onto each job (SCAN only)

    Returns:
        Number of jobs queued
    """
    if mode not in (SliceMode.SCAN, SliceMode.AI_AUTO):
        raise ValueError(f"Mode {mode.value} is not run by the batch queue")

    wanted = set(item_ids)
    count = 0
    for job in jobs:
        if job.item_id in wanted:
            job.status = JobStatus.QUEUED
            job.mode = mode
            if mode == SliceMode.SCAN and config is not None:
                job.config = config.copy()
            count += 1
    return count


def clear_slices(jobs: Iterable[DetectionJob], item_ids: Iterable[str]) -> int:
    """Drop the regions of the given jobs and return them to idle."""
    wanted = set(item_ids)
    count = 0
    for job in jobs:
        if job.item_id in wanted:
            job.regions = []
            job.error = None
            job.status = JobStatus.IDLE
            count += 1
    return count


def apply_grid(jobs: Iterable[DetectionJob], item_ids: Iterable[str], rows: int, cols: int) -> int:
    """Give the given jobs a uniform grid of slices."""
    slices = generate_grid_slices(rows, cols)
    wanted = set(item_ids)
    count = 0
    for job in jobs:
        if job.item_id in wanted:
            job.mode = SliceMode.GRID
            job.regions = list(slices)
            job.error = None
            job.status = JobStatus.DONE
            count += 1
    return count


# ---- detection dispatch ----------------------------------------------------

class Upload(NamedTuple):
    """Image prepared for the external recognizer."""
    data: str                 # base64 payload
    mime_type: str
    size: Tuple[int, int]     # transmitted (width, height)
    prompt: str


RecognizeFn = Callable[[DetectionJob, Upload], Awaitable[str]]


def make_detect_fn(
    config: Optional[AppConfig] = None,
    load_buffer: Callable[[Any], np.ndarray] = load_image,
    recognize: Optional[RecognizeFn] = None,
) -> DetectFn:
    """Build the per-job detection coroutine used by the orchestrator.

    SCAN jobs run the local SliceDetector with the job's scan settings.
    AI_AUTO jobs send a downscaled JPEG through ``recognize`` (supplied by
    the caller, which owns transport and authentication) and normalize the
    returned text.

    Args:
        config: Application configuration
        load_buffer: Loader for job sources that are not arrays
        recognize: ``async recognize(job, upload) -> str``

    Returns:
        ``async detect(job) -> List[Region]``
    """
    config = config or AppConfig()

    async def detect(job: DetectionJob) -> List[Region]:
        source = job.source
        buffer = as_rgba(source) if isinstance(source, np.ndarray) else load_buffer(source)

        if job.mode == SliceMode.SCAN:
            detector = SliceDetector(job.config or config.scan)
            return detector.detect_slices(buffer)

        if job.mode == SliceMode.AI_AUTO:
            if recognize is None:
                raise RecognizerError("No recognizer configured for AI detection")
            rc = config.recognizer
            data, mime_type, size = encode_for_upload(buffer, rc.max_upload_dim, rc.jpeg_quality)
            text = await recognize(job, Upload(data, mime_type, size, rc.system_prompt))
            width, height = buffer_size(buffer)
            return regions_from_text(text, width, height, rc)

        raise ValueError(f"Mode {job.mode.value} has no detection step")

    return detect
