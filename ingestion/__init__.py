"""
Package ingestion pipeline: fetch repository metadata and merge it into storage.

Modules:
    candidates: Select packages to ingest (by id, or a prioritized batch)
    github_client: GitHub metadata, license and README fetches with retries
    readme_cache: S3 README store and the ETag-based cache decision
    merger: Load-or-create and whole-record overwrite of Repository rows
    metrics: Per-run Prometheus gauges pushed to a Pushgateway
    runner: Orchestrator fanning out one isolated unit of work per package
    scheduler: APScheduler integration for periodic ingestion

Architecture:
    CandidateSelector → IngestionRunner → (per package, concurrently)
    GitHubClient → README cache → merger → Repository; then package status
    and metrics.

    A failing package never affects the others: each unit returns an
    IngestionOutcome instead of raising.

Usage:
    from ingestion.runner import IngestionRunner
    from ingestion.github_client import GitHubClient

Example:
    async with GitHubClient() as client:
        runner = IngestionRunner(async_session_maker, client)
        summary = await runner.run(limit=10)

    print(f"Ingested {summary.succeeded}/{summary.total} packages")
"""

__all__ = [
    "IngestionRunner",
    "IngestionOutcome",
    "IngestionSummary",
    "GitHubClient",
    "S3ReadmeStore",
    "IngestionMetrics",
    "IngestionScheduler",
]
