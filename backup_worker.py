#!/usr/bin/env python
"""Run the backup scheduler, or a single backup job."""

import argparse
import asyncio
import logging
import os
import sys

# Add parent directory to path for development
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from nano_backup import BackupConfig, BackupJob, BackupOrchestrator, BackupScheduler

# App-managed pattern: attach our own handler and don't propagate
backup_logger = logging.getLogger("nano-backup")
backup_logger.setLevel(logging.INFO)
backup_logger.propagate = False
backup_logger.handlers.clear()

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
formatter = logging.Formatter(
    '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
console_handler.setFormatter(formatter)
backup_logger.addHandler(console_handler)

# Optional: leave logging to the host process (systemd, container runtime, ...)
if os.getenv("DISABLE_APP_LOGGING", "false").lower() == "true":
    backup_logger.handlers.clear()
    backup_logger.propagate = True


async def run(job=None):
    config = BackupConfig.from_env()
    orchestrator = BackupOrchestrator.from_config(config)
    scheduler = BackupScheduler(orchestrator, config.schedule)

    try:
        if job is not None:
            result = await scheduler.trigger(job)
            backup_logger.info(f"Job {job.value} finished: {result.model_dump_json()}")
            return

        scheduler.start()
        backup_logger.info(f"Next scheduled backup: {scheduler.next_run_time()}")
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
        await orchestrator.close()


def main():
    """Run the backup worker."""
    parser = argparse.ArgumentParser(description="nano-backup worker")
    parser.add_argument(
        "job",
        nargs="?",
        choices=[job.value for job in BackupJob],
        help="Run a single job now instead of starting the scheduler",
    )
    args = parser.parse_args()

    try:
        asyncio.run(run(BackupJob(args.job) if args.job else None))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
