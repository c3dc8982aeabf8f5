"""
Process-wide owner of recurring background jobs (backups, reminders).

Each job is timed by its own daemon threading.Timer; when it fires the next
timer is armed. With a dispatch function set, the job itself runs wherever
dispatch puts it (the shell's event loop) rather than on the timer thread.
A failing job is logged and keeps its schedule.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .logger import get_logger

logger = get_logger("scheduler")

JobFn = Callable[[], object]


@dataclass
class Job:
    name: str
    interval: float  # seconds
    fn: JobFn
    runs: int = 0
    failures: int = 0
    timer: Optional[threading.Timer] = None


class Scheduler:
    def __init__(self, dispatch: Optional[Callable[..., object]] = None) -> None:
        # Set to an event loop's call_soon_threadsafe to run jobs on that loop
        self.dispatch = dispatch
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._started = False

    def register(self, name: str, interval: float, fn: JobFn) -> Job:
        if interval <= 0:
            raise ValueError(f"Job interval must be positive, got {interval}")
        with self._lock:
            if name in self._jobs:
                raise ValueError(f"A job named {name!r} is already registered")
            job = Job(name=name, interval=interval, fn=fn)
            self._jobs[name] = job
            if self._started:
                self._arm(job)
        logger.debug(f"Registered job {name} every {interval}s")
        return job

    def jobs(self) -> List[str]:
        with self._lock:
            return list(self._jobs)

    def get(self, name: str) -> Optional[Job]:
        return self._jobs.get(name)

    def is_scheduled(self, name: str) -> bool:
        job = self._jobs.get(name)
        return job is not None and job.timer is not None

    def start(self) -> None:
        with self._lock:
            self._started = True
            for job in self._jobs.values():
                if job.timer is None:
                    self._arm(job)
        logger.info(f"Scheduler started with {len(self._jobs)} jobs")

    def _arm(self, job: Job) -> None:
        # Caller holds the lock
        timer = threading.Timer(job.interval, self._fire, args=(job.name,))
        timer.daemon = True
        job.timer = timer
        timer.start()

    def _fire(self, name: str) -> None:
        if self.dispatch is None:
            self.run_pending(name)
        else:
            try:
                self.dispatch(self.run_pending, name)
            except RuntimeError as e:
                # Event loop already closed; shutdown() is on its way
                logger.debug(f"Job {name} not dispatched: {e}")
        with self._lock:
            job = self._jobs.get(name)
            # cancel() or shutdown() in the meantime leaves the job unarmed
            if job is not None and job.timer is not None and self._started:
                self._arm(job)

    def run_pending(self, name: str) -> bool:
        """Run one job now on the calling thread; False when it raised."""
        job = self._jobs.get(name)
        if job is None:
            raise KeyError(name)
        try:
            job.fn()
        except Exception as e:
            # never let a background job take the process down
            job.failures += 1
            logger.error(f"Job {name} failed: {e}", exc_info=True)
            return False
        finally:
            job.runs += 1
        return True

    def cancel(self, name: str) -> bool:
        with self._lock:
            job = self._jobs.get(name)
            if job is None or job.timer is None:
                return False
            job.timer.cancel()
            job.timer = None
        logger.debug(f"Cancelled job {name}")
        return True

    def restart(self, name: str, interval: Optional[float] = None) -> None:
        """Re-arm a job from now, optionally with a new interval."""
        if interval is not None and interval <= 0:
            raise ValueError(f"Job interval must be positive, got {interval}")
        with self._lock:
            job = self._jobs.get(name)
            if job is None:
                raise KeyError(name)
            if job.timer is not None:
                job.timer.cancel()
            if interval is not None:
                job.interval = interval
            self._started = True
            self._arm(job)
        logger.debug(f"Restarted job {name} every {job.interval}s")

    def shutdown(self) -> None:
        with self._lock:
            self._started = False
            for job in self._jobs.values():
                if job.timer is not None:
                    job.timer.cancel()
                    job.timer = None
        logger.info("Scheduler stopped")
