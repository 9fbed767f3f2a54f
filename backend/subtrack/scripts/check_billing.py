"""Trigger the billing check by hand.

Queue it for the workers (the default), or run it in this process::

    python -m subtrack.scripts.check_billing
    python -m subtrack.scripts.check_billing --sync
    python -m subtrack.scripts.check_billing --sync --date 2026-03-01

``--date`` bills what was due on that day, for back-fills after an outage.
"""

import argparse
import asyncio
import logging
import sys
from datetime import date

from subtrack.billing.check import BillingCheckJob
from subtrack.clock import Clock, FixedClock, SystemClock
from subtrack.config import settings
from subtrack.logging_config import configure_logging
from subtrack.worker.queue import CeleryJobQueue, JobQueue

logger = logging.getLogger("subtrack.scripts.check_billing")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the daily subscription billing check.")
    parser.add_argument("--sync", action="store_true", help="run in this process instead of queueing")
    parser.add_argument("--date", type=date.fromisoformat, help="billing date (YYYY-MM-DD), default today")
    return parser.parse_args(argv)


async def run_sync(clock: Clock, queue: JobQueue) -> dict:
    from subtrack.database import create_worker_engine, make_session_factory

    engine = create_worker_engine()
    try:
        job = BillingCheckJob(make_session_factory(engine), queue, clock=clock)
        summary = await job.run()
    finally:
        await engine.dispose()
    return summary.to_dict()


def main(argv: list[str] | None = None, queue: JobQueue | None = None) -> int:
    args = parse_args(argv)
    configure_logging()
    queue = queue or CeleryJobQueue()

    try:
        if args.sync:
            clock = FixedClock.on(args.date) if args.date else SystemClock()
            summary = asyncio.run(run_sync(clock, queue))
            logger.info(
                "Billing check finished: date=%s total=%s processed=%s failed=%s enqueued=%s",
                summary["today"],
                summary["total"],
                summary["processed"],
                summary["failed"],
                summary["enqueued"],
            )
            return 1 if summary["failed"] else 0

        payload = {"day": args.date.isoformat()} if args.date else {}
        job_id = queue.enqueue(BillingCheckJob.job_name, payload, settings.billing_queue)
        logger.info("Billing check queued: queue=%s job_id=%s", settings.billing_queue, job_id)
        return 0
    except Exception:
        logger.exception("Billing check failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
