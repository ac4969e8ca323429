"""Run the Overdue reconciliation pass against a running tasks API.

Usage:
    python src/sweep.py                      # one pass
    python src/sweep.py --interval 300       # every 5 minutes until Ctrl-C
    python src/sweep.py --base-url http://tasks.internal/api

Settings (TASKS_API_BASE_URL, TASKS_TIMEZONE, ...) come from the environment.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Ensure src/ is on sys.path when run directly
_src = Path(__file__).resolve().parent
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from config import Settings, configure_logging, get_settings
from errors import ApiError
from reconciliation import reconcile_tasks
from task_client import TaskClient

logger = logging.getLogger("sweep")


async def sweep_once(client: TaskClient, settings: Settings) -> int:
    """Reconcile every task once. Returns how many tasks ended up with a different status."""
    tasks = await client.list_tasks()
    result = await reconcile_tasks(tasks, client, tz=settings.tz)
    changed = sum(1 for before, after in zip(tasks, result) if before.status != after.status)
    logger.info("Sweep checked %d task(s), %d status change(s).", len(tasks), changed)
    return changed


async def run(settings: Settings, interval: float | None = None) -> None:
    async with TaskClient.from_settings(settings) as client:
        while True:
            try:
                await sweep_once(client, settings)
            except ApiError as exc:
                if interval is None:
                    raise
                logger.warning("Sweep failed (%s): %s", exc.kind.value, exc.detail or exc.message)
            if interval is None:
                return
            await asyncio.sleep(interval)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Flip task statuses to/from Overdue based on due dates.")
    parser.add_argument("--base-url", help="API base URL, e.g. http://localhost:8000/api")
    parser.add_argument("--interval", type=float, help="Repeat every N seconds instead of running once")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    if args.base_url:
        settings = replace(settings, api_base_url=args.base_url.rstrip("/"))
    configure_logging(settings)
    try:
        asyncio.run(run(settings, args.interval))
    except ApiError as exc:
        logger.error("Sweep failed: %s", exc.detail or exc.message)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
