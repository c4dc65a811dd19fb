"""
ratewatch - Main application entry point.

Watches currency pairs and cryptocurrencies against user-defined thresholds
and notifies once per crossing, checking in the background on a schedule.

Usage:
    python src/main.py [run]
    python src/main.py check
    python src/main.py list
    python src/main.py add currency BASE TARGET above|below VALUE [HOURS]
    python src/main.py add crypto ID SYMBOL above|below VALUE [HOURS]
    python src/main.py delete|toggle|reset ID
    python src/main.py cancel-background
"""

import asyncio
import sys
from typing import List

from dotenv import load_dotenv
from pydantic import ValidationError

# Load environment variables first
load_dotenv()

from ratewatch.config.logging import get_logger
from ratewatch.exceptions import RatewatchError, ValidationException
from ratewatch.models import AlertDraft, AlertKind
from ratewatch.utils.config import Application, build_application, initialize_application

USAGE = __doc__.split("Usage:")[1]


async def run_service(app: Application) -> None:
    """Launch check, then keep the background alert check armed until interrupted."""
    logger = get_logger(__name__)

    # Registered before start so a request persisted by a previous run finds it
    app.background.register_job()
    app.backend.start()
    try:
        await app.notifier.request_permission()

        if app.settings.check_on_launch:
            outcome = await app.alerts.check_on_launch()
            print_outcome(outcome)

        app.background.schedule_next()

        logger.info(
            "Watching alerts",
            interval_minutes=app.background.refresh_interval.total_seconds() / 60,
        )
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down scheduler")
        app.backend.shutdown()


async def cancel_background(app: Application) -> None:
    # Paused, so opening the job store never fires a due request
    app.backend.scheduler.start(paused=True)
    try:
        app.background.cancel_all()
    finally:
        app.backend.shutdown()


def print_outcome(outcome) -> None:
    if not outcome.success:
        print(f"Error: {outcome.error_message}")
        return

    result = outcome.result
    print(
        f"Checked {result.evaluated} alert(s), "
        f"{len(result.triggered)} triggered, {len(result.reset)} auto-reset, "
        f"{len(result.errors)} failed"
    )
    for alert in result.triggered:
        print(f"  ! {alert.pair_label} {alert.condition.display_name} "
              f"{alert.condition.threshold} (now {result.observed[alert.id]})")


def print_alerts(app: Application) -> None:
    alerts = app.alerts.list_alerts()
    if not alerts:
        print("No alerts")
        return

    for alert in alerts:
        reset = (
            f" auto-reset {alert.auto_reset_after_hours}h"
            if alert.auto_reset_after_hours
            else ""
        )
        print(
            f"{alert.id}  {alert.pair_label:<14} "
            f"{alert.condition.display_name} {alert.condition.threshold}  "
            f"[{alert.effective_state.value}]{reset}"
        )


def parse_draft(args: List[str]) -> AlertDraft:
    """Build an AlertDraft from `add` command arguments."""
    kind = AlertKind(args[0].lower())
    first, second, direction, value = args[1:5]
    hours = int(args[5]) if len(args) > 5 else None

    if kind == AlertKind.CRYPTO:
        subject = {"crypto_id": first, "crypto_symbol": second}
    else:
        subject = {"base_currency": first, "target_currency": second}

    return AlertDraft(
        kind=kind,
        direction=direction.lower(),
        threshold=value,
        auto_reset_after_hours=hours,
        **subject,
    )


def main() -> None:
    """Main application entry point."""
    settings = initialize_application()

    logger = get_logger(__name__)
    logger.info("Starting ratewatch")

    app = build_application(settings)
    command = sys.argv[1] if len(sys.argv) > 1 else "run"
    args = sys.argv[2:]

    try:
        if command == "run":
            try:
                asyncio.run(run_service(app))
            except KeyboardInterrupt:
                logger.info("Received interrupt signal")
                print("\nShutting down...")
        elif command == "check":
            print_outcome(asyncio.run(app.alerts.check_now()))
        elif command == "list":
            print_alerts(app)
        elif command == "add":
            alert = asyncio.run(app.alerts.create_alert(parse_draft(args)))
            print(f"Created alert {alert.id}: {alert.pair_label}")
        elif command == "delete":
            asyncio.run(app.alerts.delete_alert(args[0]))
            print(f"Deleted alert {args[0]}")
        elif command == "toggle":
            alert = asyncio.run(app.alerts.toggle_alert(args[0]))
            print(f"Alert {alert.id} is now {alert.effective_state.value}")
        elif command == "reset":
            alert = asyncio.run(app.alerts.reset_alert(args[0]))
            print(f"Alert {alert.id} is now {alert.effective_state.value}")
        elif command == "cancel-background":
            asyncio.run(cancel_background(app))
            print("Background alert checks cancelled")
        else:
            print(f"Unknown command: {command}\nUsage:{USAGE}")
            sys.exit(2)
    except ValidationError as e:
        error = ValidationException.from_pydantic(e)
        logger.error("Invalid alert", field_errors=error.details["field_errors"])
        for field, message in error.details["field_errors"].items():
            print(f"Error: {field}: {message}")
        sys.exit(1)
    except (IndexError, ValueError) as e:
        logger.error("Invalid command arguments", command=command, error=str(e))
        print(f"Error: invalid arguments for '{command}'.\nUsage:{USAGE}")
        sys.exit(1)
    except RatewatchError as e:
        logger.error("Command failed", command=command, error=e.message)
        print(f"Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
