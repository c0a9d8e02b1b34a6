"""TaskLedger command-line entry point."""

import argparse
import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskledger.config import settings
from taskledger.db.base import close_db, create_engine, get_session, init_db
from taskledger.engine import ConflictError, TaskLedgerEngine, UserNotFound
from taskledger.models import TaskStatus
from taskledger.observability.metrics import metrics

logger = logging.getLogger("taskledger")

DEMO_EMAILS = {"carlos": "carlos@example.com", "ana": "ana@example.com"}


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def load_demo_users(engine: TaskLedgerEngine) -> dict | None:
    """Return the sample users if an earlier run already stored them."""
    try:
        return {key: await engine.get_user_by_email(email) for key, email in DEMO_EMAILS.items()}
    except UserNotFound:
        return None


async def seed_demo(engine: TaskLedgerEngine) -> dict:
    """Load the sample users, categories, and tasks, then exercise the lifecycle.

    Seeding runs once per database; later calls return the stored users.
    """
    existing = await load_demo_users(engine)
    if existing:
        logger.info("Demo data already present, skipping seed")
        return existing

    carlos = await engine.create_user("Carlos Silva", DEMO_EMAILS["carlos"], "hash-1")
    ana = await engine.create_user("Ana Costa", DEMO_EMAILS["ana"], "hash-2")

    work = await engine.create_category("Work", description="Work related tasks.")
    personal = await engine.create_category("Personal", description="Everyday tasks.")

    report = await engine.create_task(
        carlos.user_id,
        "Prepare report",
        category_id=work.category_id,
        description="Prepare the monthly report for the meeting.",
        due_in_days=1,
    )
    await engine.create_task(
        carlos.user_id,
        "Buy groceries",
        category_id=personal.category_id,
        description="Go to the market and buy groceries.",
        priority="low",
    )
    await engine.create_task(
        ana.user_id,
        "Update project",
        category_id=work.category_id,
        description="Update the project status in the system.",
        priority="high",
        due_in_days=3,
    )

    await engine.transition_status(report.task_id, TaskStatus.COMPLETED)
    await engine.delete_category(work.category_id)

    return {"carlos": carlos, "ana": ana}


async def run_demo(database_url: str | None = None) -> int:
    db_engine = create_engine(database_url) if database_url else None
    session_factory = (
        async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
        if db_engine
        else None
    )

    await init_db(db_engine)
    try:
        async with get_session(session_factory) as session:
            engine = TaskLedgerEngine(session)
            users = await seed_demo(engine)
            carlos = users["carlos"]

            for row in await engine.task_listing():
                print(f"{row.owner_name:<14} {row.title:<16} {row.status.value:<10} {row.category_name}")

            print(f"pending for Carlos: {await engine.count_pending_tasks(carlos.user_id)}")
            print(f"completed for Carlos: {await engine.count_completed_tasks(carlos.user_id)}")

            for row in await engine.dashboard():
                print(f"{row.title:<16} {row.situation.value}")
            for row in await engine.productivity_report():
                print(
                    f"{row.user_name:<14} total={row.total_tasks} "
                    f"avg_hours={row.average_resolution_hours}"
                )

            try:
                await engine.delete_user(carlos.user_id)
            except ConflictError as e:
                print(f"delete Carlos: {e}")
    finally:
        await close_db(db_engine)

    logger.debug(f"Metrics: {metrics.snapshot()}")
    return 0


async def run_init_db(database_url: str | None = None) -> int:
    db_engine = create_engine(database_url) if database_url else None
    await init_db(db_engine)
    await close_db(db_engine)
    logger.info("Database initialized")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the application."""
    parser = argparse.ArgumentParser(description="TaskLedger task lifecycle engine")
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Logging level (default: {settings.log_level})",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database to use instead of TASKLEDGER_DATABASE_URL",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("init-db", help="Create database tables")
    subcommands.add_parser("demo", help="Seed sample data and print the derived views")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "init-db":
        return asyncio.run(run_init_db(args.database_url))
    return asyncio.run(run_demo(args.database_url))


if __name__ == "__main__":
    sys.exit(main())
