"""
Digest worker entry point.

    python -m app.worker            # loop every DIGEST_INTERVAL_SECONDS
    python -m app.worker --once     # single cycle, then exit

Run exactly one looping worker per database, or rely on the row claim in
run_digest_cycle when running several.
"""
from __future__ import annotations

import time
from typing import Optional

import typer

from app.core.config import settings
from app.core.logging import configure_logging, get_logger
from app.db.base import SessionLocal
from app.services.notification import NotificationSender
from app.services.scheduler import CycleResult, digest_timezone, run_digest_cycle

log = get_logger(__name__)

cli = typer.Typer(add_completion=False, help="Aggregate unprocessed events into digests.")


def run_once(sender: NotificationSender) -> Optional[CycleResult]:
    db = SessionLocal()
    try:
        return run_digest_cycle(db, sender=sender, tz=digest_timezone())
    except Exception:
        log.exception("digest.cycle_failed")
        return None
    finally:
        db.close()


@cli.command()
def main(
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit."),
    interval: int = typer.Option(
        settings.DIGEST_INTERVAL_SECONDS, "--interval", min=1, help="Seconds between cycles."
    ),
) -> None:
    configure_logging()
    sender = NotificationSender()
    if not sender.enabled:
        log.warning("worker.delivery_disabled", reason="OPENCLAW_HOOK_URL not set")

    log.info("worker.started", interval=interval, once=once)
    try:
        while True:
            result = run_once(sender)
            if result is not None:
                log.info(
                    "worker.cycle_finished",
                    digest_id=result.digest_id,
                    event_count=result.event_count,
                    delivered=len(result.delivered),
                    failed=len(result.failed),
                )
            if once:
                break
            time.sleep(interval)
    finally:
        sender.close()


if __name__ == "__main__":
    cli()
