import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import create_async_engine
from core.config import settings
from core.database import create_session_factory
from ingestion.runner import IngestionRunner
from ingestion.github_client import GitHubClient
from ingestion.readme_cache import S3ReadmeStore
from ingestion.metrics import IngestionMetrics

logger = logging.getLogger(__name__)


class IngestionScheduler:
    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self.engine = create_async_engine(settings.DATABASE_URL, echo=False)
        self.SessionLocal = create_session_factory(self.engine)
        self.readme_store = (
            S3ReadmeStore(settings.README_BUCKET, settings.AWS_REGION)
            if settings.README_BUCKET else None
        )

    async def run_ingest_job(self):
        """Job to ingest the next batch of packages"""
        logger.info("Scheduler: Starting ingest job")
        metrics = IngestionMetrics()
        try:
            async with GitHubClient() as client:
                runner = IngestionRunner(
                    self.SessionLocal,
                    client,
                    readme_store=self.readme_store,
                    metrics=metrics
                )
                await runner.run(limit=settings.INGEST_BATCH_SIZE)
        except Exception as e:
            logger.error(f"Scheduler: Ingest job failed - {e}")

        if settings.PUSHGATEWAY_URL:
            try:
                await metrics.push(settings.PUSHGATEWAY_URL)
            except Exception as e:
                logger.warning(f"Scheduler: {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_ingest_job,
            trigger=IntervalTrigger(minutes=settings.INGEST_INTERVAL_MINUTES),
            id="ingest_job",
            replace_existing=True,
            max_instances=1
        )
        self.scheduler.start()
        logger.info("Ingest scheduler started")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Ingest scheduler stopped")
