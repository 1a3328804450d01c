import argparse

from parkmitra.core.logging_config import get_logger
from parkmitra.core.redis import AvailabilityCache, get_redis_client
from parkmitra.db.session import Database
from parkmitra.services.container import build_services
from parkmitra.utils.clock import utcnow

logger = get_logger().bind(log_type="sweep")


def run(db: Database, reconcile: bool = False, cache: AvailabilityCache | None = None) -> dict:
    """One pass of the periodic lifecycle job against an opened database."""
    services = build_services(db, cache)
    now = utcnow()

    result = services.lifecycle.sweep_lifecycle(now)
    penalties = services.lifecycle.recalculate_penalties(now)

    summary = {
        "activated": result.activated,
        "overstayed": result.overstayed,
        "failed": result.failed,
        "penalties_updated": penalties,
    }
    if reconcile:
        summary["reconciled_lots"] = len(services.ledger.reconcile_all())

    logger.info(f"Lifecycle job finished | {summary}")
    return summary


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Advance booking lifecycle: activate, flag overstays, refresh penalties",
        epilog="Run from cron, e.g. every minute: python -m parkmitra.jobs.lifecycle_sweep",
    )
    parser.add_argument("--reconcile", action="store_true",
                        help="Also recompute every lot's available_slots from bookings")
    parser.add_argument("--database-url", metavar="URL",
                        help="Override DATABASE_URL for this run")
    args = parser.parse_args(argv)

    db = Database(args.database_url) if args.database_url else Database()
    db.open()
    try:
        return run(db, reconcile=args.reconcile, cache=AvailabilityCache(get_redis_client()))
    finally:
        db.close()


if __name__ == "__main__":
    main()
