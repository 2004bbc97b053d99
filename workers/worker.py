"""Worker for Order Scrub.

Listens on the order scrub task queue and executes the workflow and its
activities. Run with --queue <name> to poll a different queue.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core import config
from core.observability.logging import configure_logging, get_logger
from storage.db import init_db
from temporal_client import get_temporal_client
from workflows.scrub_workflow import OrderScrubWorkflow
from activities.scrub import parse_order_files, reconcile_orders, persist_scrub_report


logger = get_logger(__name__)

ACTIVITIES = [
    parse_order_files,
    reconcile_orders,
    persist_scrub_report,
]

WORKFLOWS = [OrderScrubWorkflow]


async def run_worker(queue: str = None):
    """Start a worker listening on the task queue.
    
    Args:
        queue: Task queue to poll (defaults to TEMPORAL_TASK_QUEUE)
    
    Raises:
        Exception: If connection to Temporal fails
    """
    task_queue = queue or config.TEMPORAL_TASK_QUEUE
    init_db()
    
    client = await get_temporal_client()
    logger.info(
        "Connected to Temporal",
        extra_fields={"namespace": client.namespace, "task_queue": task_queue},
    )
    
    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
    )
    
    logger.info(
        "Worker running... (Ctrl+C to stop)",
        extra_fields={"workflows": len(WORKFLOWS), "activities": len(ACTIVITIES)},
    )
    try:
        await worker.run()
    except Exception:
        logger.exception("Worker error")
        raise


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Order Scrub Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=config.TEMPORAL_TASK_QUEUE,
        help=f"Task queue to poll (default: {config.TEMPORAL_TASK_QUEUE})"
    )
    
    args = parser.parse_args()
    configure_logging()
    try:
        asyncio.run(run_worker(queue=args.queue))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


if __name__ == "__main__":
    main()
