"""
Seed Service - Loads the content dataset and runs it through the seed runner
"""

import logging
from typing import List, Optional
from sqlalchemy.engine import Engine

import config
from core.content_loader import ContentLoader
from core.database import create_db_engine, schema_exists, verify_connection
from core.errors import SeedConfigurationError, UnknownBundleError
from core.seed_runner import SeedRunner
from models.schemas import BundleOutcome, ContentBundle, SeedReport

EXIT_OK = 0
EXIT_BUNDLE_FAILED = 1
EXIT_CONFIG_ERROR = 2

class SeedService:
    """Entry point shared by the CLI and tests for a complete seed run."""

    def __init__(self, engine: Optional[Engine] = None, content_dir: Optional[str] = None,
                 bundle_timeout: Optional[float] = None):
        self.engine = engine or create_db_engine()
        self.loader = ContentLoader(content_dir)
        self.bundle_timeout = config.SEED_BUNDLE_TIMEOUT if bundle_timeout is None else bundle_timeout

    def select_bundles(self, only: Optional[str] = None, area: Optional[str] = None) -> List[ContentBundle]:
        """Load the bundles a run should process."""
        if only:
            if only not in self.loader.discover():
                raise UnknownBundleError(only)
            return [self.loader.load(only)]
        return self.loader.load_all(area=area)

    def run(self, only: Optional[str] = None, area: Optional[str] = None,
            fail_fast: bool = False, dry_run: Optional[bool] = None) -> SeedReport:
        """Run the seeder. Raises SeedConfigurationError (content, connection or schema) on fatal problems."""
        dry_run = config.SEED_DRY_RUN if dry_run is None else dry_run

        bundles = self.select_bundles(only=only, area=area)

        verify_connection(self.engine)
        if not schema_exists(self.engine):
            raise SeedConfigurationError(
                f"Database {self.engine.url.database} has no seeder schema; run init_db.py first"
            )

        runner = SeedRunner(
            self.engine,
            dry_run=dry_run,
            fail_fast=fail_fast,
            bundle_timeout=self.bundle_timeout,
        )
        report = runner.ingest(bundles)
        log_summary(report)
        return report

def exit_code_for(report: SeedReport) -> int:
    return EXIT_OK if report.succeeded else EXIT_BUNDLE_FAILED

def log_summary(report: SeedReport):
    logging.info(
        f"Seed run finished: {report.count(BundleOutcome.APPLIED)} applied, "
        f"{report.count(BundleOutcome.SKIPPED)} skipped, "
        f"{report.count(BundleOutcome.VALIDATED)} validated, "
        f"{report.count(BundleOutcome.FAILED)} failed"
    )
    for failure in report.failures:
        logging.info(f"  {failure.bundle_id} [{failure.stage}] {failure.cause}: {failure.summary}")
