"""
Periodic Archiver

Runs one asyncio task per archived dimension. Each task:

1. computes the next clock-aligned boundary from the current time
2. waits until the clock reaches it (or until shutdown is requested)
3. queries the dimension and writes one snapshot per entity, labelled with
   that boundary

The boundary is recomputed from the clock every cycle, so sleep overshoot and
slow cycles never accumulate drift. A failed cycle is logged and skipped; the
next boundary is the next chance. Nothing a single cycle does ends the loop.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

import structlog

from statshub.archive.schedule import next_boundary, utcnow
from statshub.database.warehouse import WarehouseWriter
from statshub.errors import StatsHubError
from statshub.metrics import ARCHIVE_CYCLES, ARCHIVE_DURATION, ARCHIVED_ROWS
from statshub.stats.models import Snapshot
from statshub.stats.query import DimensionQueryService

logger = structlog.get_logger(__name__)


@dataclass
class ArchiveReport:
    """Outcome of one archive cycle of one dimension"""

    dimension: str
    boundary: datetime
    written: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    rows: int = 0
    error: Optional[str] = None

    @property
    def status(self) -> str:
        if self.error is not None:
            return "skipped"
        if self.failed:
            return "partial" if self.written else "failed"
        return "success"


class PeriodicArchiver:
    """
    Archive dimensions to the warehouse on independent, aligned intervals.

    Example:
        archiver = PeriodicArchiver(
            query_service,
            writer,
            {"fallback": timedelta(minutes=10), "country": timedelta(hours=1)},
        )
        archiver.start()
        ...
        await archiver.stop()
    """

    def __init__(
        self,
        query_service: DimensionQueryService,
        writer: WarehouseWriter,
        schedules: Mapping[str, timedelta],
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        for dimension, interval in schedules.items():
            if interval <= timedelta(0):
                raise ValueError(f"Interval for {dimension} must be positive")

        self.query_service = query_service
        self.writer = writer
        self.schedules = dict(schedules)
        self._clock = clock
        self._sleep = sleep
        self._stopping = asyncio.Event()
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def running_dimensions(self) -> List[str]:
        return sorted(dimension for dimension, task in self._tasks.items() if not task.done())

    def start(self) -> None:
        """Start one archiving task per dimension on the running loop."""
        if self._tasks:
            raise RuntimeError("Archiver already started")

        self._stopping.clear()
        for dimension, interval in self.schedules.items():
            self._tasks[dimension] = asyncio.create_task(
                self.run_dimension(dimension, interval),
                name=f"archive-{dimension}",
            )
        logger.info("Archiver started", dimensions=sorted(self.schedules))

    def request_stop(self) -> None:
        """Ask every dimension loop to stop after its current cycle."""
        self._stopping.set()

    async def stop(self, timeout: float = 30.0) -> None:
        """
        Stop all dimension loops.

        Waiting loops return at once; a cycle already writing gets ``timeout``
        seconds to finish before its task is cancelled.
        """
        self.request_stop()
        tasks = list(self._tasks.values())
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("Cancelled unfinished archive cycles", count=len(pending))
                await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        logger.info("Archiver stopped")

    async def run_dimension(self, dimension: str, interval: timedelta) -> None:
        """Archive one dimension at every aligned boundary until stopped."""
        logger.info(
            "Archiving dimension",
            dimension=dimension,
            interval_seconds=interval.total_seconds(),
        )
        while not self._stopping.is_set():
            boundary = next_boundary(self._clock(), interval)
            if not await self._wait_until(boundary):
                break
            try:
                await self.archive_once(dimension, boundary)
            except Exception:
                ARCHIVE_CYCLES.labels(dimension=dimension, status="error").inc()
                logger.exception(
                    "Archive cycle crashed",
                    dimension=dimension,
                    boundary=boundary.isoformat(),
                )
        logger.info("Stopped archiving dimension", dimension=dimension)

    async def archive_once(self, dimension: str, boundary: datetime) -> ArchiveReport:
        """
        Snapshot every entity of ``dimension`` at ``boundary``.

        Each entity is written independently; one failed write does not stop
        the others. Query failures skip the whole cycle.
        """
        report = ArchiveReport(dimension=dimension, boundary=boundary)
        start = time.perf_counter()

        try:
            stats_by_dim = await self.query_service.query([dimension])
        except StatsHubError as e:
            report.error = e.message
            ARCHIVE_CYCLES.labels(dimension=dimension, status=report.status).inc()
            logger.error(
                "Unable to query dimension for archiving, skipping cycle",
                dimension=dimension,
                boundary=boundary.isoformat(),
                error=e.message,
            )
            return report

        for entity, stats in stats_by_dim.get(dimension, {}).items():
            snapshot = Snapshot(dimension=dimension, entity=entity, stats=stats, boundary=boundary)
            try:
                report.rows += await self.writer.write(snapshot)
                report.written.append(entity)
            except StatsHubError as e:
                report.failed[entity] = e.message
            except Exception as e:
                logger.exception("Unexpected archive write failure", dimension=dimension, entity=entity)
                report.failed[entity] = f"{type(e).__name__}: {e}"

        ARCHIVED_ROWS.labels(dimension=dimension).inc(report.rows)
        ARCHIVE_DURATION.labels(dimension=dimension).observe(time.perf_counter() - start)
        ARCHIVE_CYCLES.labels(dimension=dimension, status=report.status).inc()

        if report.failed:
            logger.error(
                "Unable to archive some entities",
                dimension=dimension,
                boundary=boundary.isoformat(),
                written=len(report.written),
                failed=len(report.failed),
                error=next(iter(report.failed.values())),
            )
        else:
            logger.info(
                "Dimension archived",
                dimension=dimension,
                boundary=boundary.isoformat(),
                entities=len(report.written),
                rows=report.rows,
            )
        return report

    async def _wait_until(self, boundary: datetime) -> bool:
        """Suspend until the clock reaches ``boundary``. False if stopped first."""
        while True:
            remaining = (boundary - self._clock()).total_seconds()
            if remaining <= 0:
                return True
            if await self._sleep_or_stop(remaining):
                return False

    async def _sleep_or_stop(self, seconds: float) -> bool:
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        stopper = asyncio.ensure_future(self._stopping.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            stopper.cancel()
        return self._stopping.is_set()
