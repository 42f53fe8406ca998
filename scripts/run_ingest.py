"""
Script to run package ingestion once, for one package or a batch
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from sqlalchemy.ext.asyncio import create_async_engine
from core.config import settings
from core.database import create_session_factory
from core.exceptions import IngestionException
from core.logging import setup_logging
from ingestion.github_client import GitHubClient
from ingestion.metrics import IngestionMetrics
from ingestion.readme_cache import S3ReadmeStore
from ingestion.runner import IngestionRunner

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Run package ingestion (fetching repository metadata)"
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--id", type=int, dest="package_id", help="package id")
    group.add_argument(
        "-l", "--limit",
        type=positive_int,
        default=settings.INGEST_DEFAULT_LIMIT,
        help="maximum number of packages to ingest"
    )
    return parser.parse_args(argv)


async def run_ingest(package_id=None, limit=None) -> int:
    """Run one ingestion and push metrics; returns the process exit code"""
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_factory = create_session_factory(engine)
    readme_store = (
        S3ReadmeStore(settings.README_BUCKET, settings.AWS_REGION)
        if settings.README_BUCKET else None
    )
    metrics = IngestionMetrics()
    exit_code = 0

    try:
        async with GitHubClient() as client:
            runner = IngestionRunner(session_factory, client, readme_store=readme_store, metrics=metrics)
            await runner.run(package_id=package_id, limit=limit)
    except IngestionException as e:
        logger.error(f"Ingestion failed: {e.message}", extra={"error_context": e.to_dict()})
        exit_code = 1
    except Exception:
        logger.exception("Ingestion failed with an unexpected error")
        exit_code = 1
    finally:
        await engine.dispose()

    if settings.PUSHGATEWAY_URL:
        try:
            await metrics.push(settings.PUSHGATEWAY_URL)
        except IngestionException as e:
            logger.warning(str(e))

    return exit_code


if __name__ == "__main__":
    setup_logging()
    args = parse_args()
    sys.exit(asyncio.run(run_ingest(package_id=args.package_id, limit=args.limit)))
