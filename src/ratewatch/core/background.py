"""Periodic background alert checks."""

import asyncio
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from ..config.logging import get_logger
from ..config.settings import MINIMUM_REFRESH_INTERVAL_MINUTES, Settings
from ..exceptions import SchedulerError, SchedulerErrorCode
from ..models import utcnow
from ..scheduler import (
    APSchedulerBackend,
    BackgroundInvocation,
    BackgroundRefreshStatus,
    TaskRequest,
)
from .checker import CheckContext
from .monitor import AlertMonitor

logger = get_logger(__name__)


class BackgroundTaskState(Enum):
    """Lifecycle of the background alert-check job."""

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    PENDING = "pending"
    RUNNING = "running"
    IDLE = "idle"


class BackgroundTaskManager:
    """
    Keeps exactly one background alert check requested at a time.

    Each invocation re-arms the next request before doing any work, so a pass
    that runs out of time never breaks the chain.
    """

    def __init__(
        self,
        backend: APSchedulerBackend,
        monitor: AlertMonitor,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.backend = backend
        self.monitor = monitor
        self.settings = settings
        self.clock = clock
        self.job_id = settings.background_job_id
        self.state = BackgroundTaskState.UNREGISTERED
        self._scheduled = False
        self.logger = logger.bind(service="background_tasks", job_id=self.job_id)

    @property
    def refresh_interval(self) -> timedelta:
        minutes = max(
            self.settings.refresh_interval_minutes, MINIMUM_REFRESH_INTERVAL_MINUTES
        )
        return timedelta(minutes=minutes)

    def register_job(self) -> bool:
        """
        Register the background handler; only the first call has any effect.

        Returns:
            True if the handler was registered by this call
        """
        if self.state != BackgroundTaskState.UNREGISTERED:
            self.logger.info("Background task already registered")
            return False

        try:
            self.backend.register(self.job_id, self.handle_invocation)
        except SchedulerError as e:
            self.logger.error(
                "Failed to register background task",
                code=e.code.value,
                error=e.message,
            )
            return False

        self.state = BackgroundTaskState.REGISTERED
        return True

    def schedule_next(self) -> bool:
        """
        Request the next background check. Never raises.

        Returns:
            True if a request is now pending
        """
        status = self.backend.get_background_refresh_status()
        if status != BackgroundRefreshStatus.AVAILABLE:
            self.logger.warning(
                "Background refresh unavailable, not scheduling",
                status=status.value,
                reason=status.description,
            )
            self._mark_unscheduled()
            return False

        # Replace, never stack, the pending request
        self.backend.cancel(self.job_id)

        earliest_begin = self.clock() + self.refresh_interval
        try:
            self.backend.submit(TaskRequest(self.job_id, earliest_begin))
        except SchedulerError as e:
            self._handle_schedule_error(e)
            self._mark_unscheduled()
            return False
        except Exception as e:
            self.logger.error(
                "Unexpected error scheduling background task",
                error=str(e),
                exc_info=True,
            )
            self._mark_unscheduled()
            return False

        self._scheduled = True
        if self.state != BackgroundTaskState.RUNNING:
            self.state = BackgroundTaskState.PENDING

        self.logger.info(
            "Background task scheduled",
            earliest_begin=earliest_begin.isoformat(),
            interval_minutes=self.refresh_interval.total_seconds() / 60,
        )
        return True

    def _mark_unscheduled(self) -> None:
        self._scheduled = False
        if self.state == BackgroundTaskState.PENDING:
            self.state = BackgroundTaskState.IDLE

    def _handle_schedule_error(self, error: SchedulerError) -> None:
        if error.code == SchedulerErrorCode.UNAVAILABLE:
            self.logger.warning(
                "Background tasks unavailable (low power mode or disabled)",
                error=error.message,
            )
        elif error.code == SchedulerErrorCode.TOO_MANY_PENDING:
            self.logger.warning(
                "Too many pending background tasks, cancelling existing requests",
                error=error.message,
            )
            self.backend.cancel(self.job_id)
        elif error.code == SchedulerErrorCode.NOT_PERMITTED:
            self.logger.error(
                "Background task not permitted",
                error=error.message,
                hint="Add the job id to BACKGROUND_PERMITTED_JOB_IDS",
            )
        else:
            self.logger.error("Failed to schedule background task", error=error.message)

    async def handle_invocation(self, invocation: BackgroundInvocation) -> bool:
        """
        Run one background alert pass within the invocation's time budget.

        Returns:
            The success value reported to the invocation
        """
        context = CheckContext(deadline=invocation.deadline, clock=self.clock)
        task: Optional[asyncio.Task] = None

        def on_expiration() -> None:
            self.logger.warning("Background alert check expired, cancelling")
            context.cancel()
            if task is not None:
                task.cancel()
            invocation.set_task_completed(False)

        invocation.expiration_handler = on_expiration

        self.schedule_next()
        self.state = BackgroundTaskState.RUNNING
        self.logger.info("Background alert check started")

        task = asyncio.create_task(self.monitor.run_pass(context))
        try:
            result = await task
        except asyncio.CancelledError:
            if not context.cancelled:
                invocation.set_task_completed(False)
                raise
            # Expired; the expiration handler has reported the failure
            success = False
        except Exception as e:
            self.logger.error(
                "Background alert check failed", error=str(e), exc_info=True
            )
            success = False
        else:
            success = not result.cancelled
        finally:
            self.state = (
                BackgroundTaskState.PENDING
                if self._scheduled
                else BackgroundTaskState.IDLE
            )

        if not invocation.completed:
            invocation.set_task_completed(success)
        return invocation.success

    def cancel_all(self) -> None:
        """Drop any pending background request."""
        self.backend.cancel(self.job_id)
        self._scheduled = False
        if self.state != BackgroundTaskState.UNREGISTERED:
            self.state = BackgroundTaskState.IDLE
        self.logger.info("Background tasks cancelled")
