"""Background job scheduling using APScheduler with a SQLAlchemy job store."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.jobstores.base import ConflictingIdError, JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .config.logging import get_logger
from .config.settings import Settings
from .exceptions import SchedulerError, SchedulerErrorCode
from .models import utcnow

logger = get_logger(__name__)

# Persisted jobs reference the runner by name so they survive restarts
JOB_FUNC_REF = "ratewatch.scheduler:run_registered_job"


class BackgroundRefreshStatus(Enum):
    """Whether the system lets the app run work in the background."""

    AVAILABLE = "available"
    DENIED = "denied"
    RESTRICTED = "restricted"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        return {
            BackgroundRefreshStatus.AVAILABLE: "Background refresh is available",
            BackgroundRefreshStatus.DENIED: "Background refresh was disabled by the user",
            BackgroundRefreshStatus.RESTRICTED: "Background refresh is restricted on this system",
            BackgroundRefreshStatus.UNKNOWN: "Background refresh status is unknown",
        }[self]


@dataclass(frozen=True)
class TaskRequest:
    """A request to run a background job no earlier than `earliest_begin`."""

    job_id: str
    earliest_begin: datetime


class BackgroundInvocation:
    """
    One execution of a background job, with a time budget.

    Completion is reported exactly once; the expiration handler fires if the
    deadline passes before that happens.
    """

    def __init__(
        self,
        job_id: str,
        deadline: datetime,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.job_id = job_id
        self.deadline = deadline
        self.expiration_handler: Optional[Callable[[], None]] = None
        self.success: Optional[bool] = None
        self._clock = clock
        self._timer: Optional[asyncio.TimerHandle] = None
        self.logger = logger.bind(job_id=job_id)

    @property
    def completed(self) -> bool:
        return self.success is not None

    def set_task_completed(self, success: bool) -> bool:
        """
        Report the outcome of this invocation.

        Returns:
            True the first time, False (and a log line) on any later call
        """
        if self.completed:
            self.logger.warning(
                "Background task completion already reported",
                reported=self.success,
                ignored=success,
            )
            return False

        self.success = success
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        self.logger.info("Background task completed", success=success)
        return True

    def arm_expiration(self) -> None:
        """Start the deadline timer on the running event loop."""
        delay = max((self.deadline - self._clock()).total_seconds(), 0.0)
        self._timer = asyncio.get_running_loop().call_later(delay, self.expire)

    def expire(self) -> None:
        if self.completed:
            return

        self.logger.warning("Background task time budget expired")
        if self.expiration_handler is not None:
            self.expiration_handler()
        if not self.completed:
            self.set_task_completed(False)


InvocationHandler = Callable[[BackgroundInvocation], Awaitable[object]]

# job id -> (backend that registered it, handler)
_handlers: Dict[str, Tuple["APSchedulerBackend", InvocationHandler]] = {}


async def run_registered_job(job_id: str) -> None:
    """Entry point the scheduler calls when a background request comes due."""
    entry = _handlers.get(job_id)
    if entry is None:
        logger.warning("No handler registered for background job", job_id=job_id)
        return

    backend, handler = entry
    invocation = BackgroundInvocation(
        job_id,
        deadline=utcnow() + timedelta(seconds=backend.time_budget_seconds),
    )
    invocation.arm_expiration()

    try:
        await handler(invocation)
    finally:
        if not invocation.completed:
            logger.warning(
                "Background handler returned without reporting completion",
                job_id=job_id,
            )
            invocation.set_task_completed(False)


def job_executed_listener(event):
    """Log successful job executions."""
    logger.debug(
        "Job executed", job_id=event.job_id, scheduled_run_time=event.scheduled_run_time
    )


def job_error_listener(event):
    """Log job execution errors."""
    logger.error(
        "Job crashed",
        job_id=event.job_id,
        error=str(event.exception),
        traceback=event.traceback,
    )


def job_missed_listener(event):
    logger.warning(
        "Job missed", job_id=event.job_id, scheduled_run_time=event.scheduled_run_time
    )


def create_scheduler(database_url: Optional[str] = None) -> AsyncIOScheduler:
    """
    Create an AsyncIOScheduler.

    Args:
        database_url: Job store database; jobs are kept in memory when None

    Returns:
        Configured AsyncIOScheduler instance
    """
    if database_url:
        jobstore = SQLAlchemyJobStore(url=database_url, tablename="apscheduler_jobs")
    else:
        jobstore = MemoryJobStore()

    job_defaults = {
        "coalesce": True,  # One pass covers any number of missed runs
        "max_instances": 1,
        "misfire_grace_time": None,  # Earliest begin, not exact begin
    }

    scheduler = AsyncIOScheduler(
        jobstores={"default": jobstore},
        job_defaults=job_defaults,
        timezone="UTC",
    )

    scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
    scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
    scheduler.add_listener(job_missed_listener, EVENT_JOB_MISSED)

    return scheduler


class APSchedulerBackend:
    """Background task scheduler with OS-like request semantics."""

    def __init__(self, settings: Settings, scheduler: Optional[AsyncIOScheduler] = None):
        self.settings = settings
        self.scheduler = scheduler or create_scheduler(settings.get_database_url())
        self._shut_down = False
        self.logger = logger.bind(service="scheduler")

    @property
    def permitted_job_ids(self) -> List[str]:
        return self.settings.background_permitted_job_ids

    @property
    def time_budget_seconds(self) -> float:
        return self.settings.background_time_budget_seconds

    def start(self) -> None:
        """Start the scheduler; must be called with the event loop running."""
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("Scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._shut_down = True
        for job_id in [k for k, (backend, _) in _handlers.items() if backend is self]:
            del _handlers[job_id]
        self.logger.info("Scheduler shutdown complete")

    def register(self, job_id: str, handler: InvocationHandler) -> None:
        """
        Register the handler that runs when `job_id` comes due.

        Raises:
            SchedulerError: NOT_PERMITTED if the id is not a permitted job id
        """
        if job_id not in self.permitted_job_ids:
            raise SchedulerError(
                SchedulerErrorCode.NOT_PERMITTED,
                f"Job id '{job_id}' is not in the permitted background job ids",
                job_id=job_id,
            )
        _handlers[job_id] = (self, handler)
        self.logger.info("Background job registered", job_id=job_id)

    def get_background_refresh_status(self) -> BackgroundRefreshStatus:
        return BackgroundRefreshStatus(self.settings.background_refresh_status)

    def submit(self, request: TaskRequest) -> None:
        """
        Submit a request to run a registered job.

        Raises:
            SchedulerError: With the code describing why the request was refused
        """
        job_id = request.job_id

        if self._shut_down:
            raise SchedulerError(
                SchedulerErrorCode.UNAVAILABLE, "Scheduler is shut down", job_id=job_id
            )

        if job_id not in self.permitted_job_ids or job_id not in _handlers:
            raise SchedulerError(
                SchedulerErrorCode.NOT_PERMITTED,
                f"Job id '{job_id}' is not permitted or not registered",
                job_id=job_id,
            )

        if (
            self.settings.low_power_mode
            or self.get_background_refresh_status() != BackgroundRefreshStatus.AVAILABLE
        ):
            raise SchedulerError(
                SchedulerErrorCode.UNAVAILABLE,
                "Background execution is not available",
                job_id=job_id,
            )

        try:
            if self.scheduler.get_job(job_id) is not None:
                raise ConflictingIdError(job_id)

            self.scheduler.add_job(
                func=JOB_FUNC_REF,
                trigger="date",
                run_date=request.earliest_begin,
                args=[job_id],
                id=job_id,
                name=f"Background: {job_id}",
                replace_existing=False,
            )
        except ConflictingIdError as e:
            raise SchedulerError(
                SchedulerErrorCode.TOO_MANY_PENDING,
                f"A request for '{job_id}' is already pending",
                job_id=job_id,
            ) from e
        except Exception as e:
            raise SchedulerError(
                SchedulerErrorCode.UNKNOWN, str(e), job_id=job_id
            ) from e

        self.logger.info(
            "Background task submitted",
            job_id=job_id,
            earliest_begin=request.earliest_begin.isoformat(),
        )

    def cancel(self, job_id: str) -> None:
        """Drop the pending request for a job; a missing request is fine."""
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            return
        self.logger.info("Pending background task cancelled", job_id=job_id)

    def pending_request(self, job_id: str) -> Optional[datetime]:
        """Earliest begin of the pending request for a job, if any."""
        job = self.scheduler.get_job(job_id)
        if job is None:
            return None
        return getattr(job, "next_run_time", None) or job.trigger.run_date
