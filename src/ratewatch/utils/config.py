"""Application bootstrap and wiring."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..config.logging import get_logger, setup_logging
from ..config.settings import Settings, get_settings
from ..core.background import BackgroundTaskManager
from ..core.checker import AlertChecker
from ..core.monitor import AlertMonitor
from ..ormdb.database import create_tables
from ..ormdb.repositories import AlertRepository, NotificationMessageRepository
from ..scheduler import APSchedulerBackend
from ..services.alert_service import AlertService
from ..services.notification import AlertNotifier, create_notification_center
from ..services.rates import create_rate_providers


def ensure_resources_directory(settings: Settings) -> None:
    """Ensure the data directory and database tables exist."""
    logger = get_logger(__name__)

    resources_path = Path(settings.data_directory)
    resources_path.mkdir(parents=True, exist_ok=True)
    logger.info("Ensured data directory exists", path=str(resources_path))

    create_tables()
    logger.info("Ensured database tables exist")


def initialize_application() -> Settings:
    """Initialize application configuration, logging and storage."""
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        format_type=settings.log_format,
        file_enabled=settings.log_file_enabled,
        file_path=settings.log_file_path,
        max_file_size=settings.log_max_file_size,
        backup_count=settings.log_backup_count,
    )

    ensure_resources_directory(settings)

    logger = get_logger(__name__)
    logger.info(
        "Application initialized successfully",
        environment=settings.environment,
        debug=settings.debug,
        data_dir=settings.data_directory,
    )
    return settings


@dataclass
class Application:
    """The wired object graph of a running ratewatch process."""

    settings: Settings
    store: AlertRepository
    checker: AlertChecker
    notifier: AlertNotifier
    monitor: AlertMonitor
    backend: APSchedulerBackend
    background: BackgroundTaskManager
    alerts: AlertService


def build_application(
    settings: Settings,
    session_factory: Optional[sessionmaker] = None,
    backend: Optional[APSchedulerBackend] = None,
) -> Application:
    """Wire every component together by explicit injection."""
    store = AlertRepository(session_factory)
    checker = AlertChecker(store, create_rate_providers(settings))
    messages = NotificationMessageRepository(session_factory)
    notifier = AlertNotifier(create_notification_center(settings, messages))
    monitor = AlertMonitor(checker, notifier, store)
    backend = backend or APSchedulerBackend(settings)

    return Application(
        settings=settings,
        store=store,
        checker=checker,
        notifier=notifier,
        monitor=monitor,
        backend=backend,
        background=BackgroundTaskManager(backend, monitor, settings),
        alerts=AlertService(store, monitor, notifier),
    )
