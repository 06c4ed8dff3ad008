#!/usr/bin/env python3
"""
Curriculum Seeder
Loads the content bundles under data/content into the learning platform database.

Exit codes: 0 all bundles applied or skipped, 1 at least one bundle failed,
2 configuration or connection error.
"""

import sys
import logging
import argparse
from sqlalchemy.exc import ArgumentError

import config
from core.database import create_db_engine, init_schema, verify_connection
from core.errors import SeedConfigurationError
from models.schemas import BundleOutcome, SeedReport
from services.seed_service import EXIT_CONFIG_ERROR, SeedService, exit_code_for
from utils.log_setup import configure_logging

OUTCOME_MARKERS = {
    BundleOutcome.APPLIED: "✅",
    BundleOutcome.SKIPPED: "⏭️ ",
    BundleOutcome.VALIDATED: "🔍",
    BundleOutcome.FAILED: "❌",
}

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="seed", description="Seed curriculum content into the database.")
    parser.add_argument('--only', metavar='BUNDLE_ID', help="run exactly one bundle, e.g. architecture/beginner/basic-architecture")
    parser.add_argument('--area', help="run only bundles of one curriculum area (architecture, backend, frontend)")
    parser.add_argument('--fail-fast', action='store_true', help="stop at the first failed bundle")
    parser.add_argument('--dry-run', action='store_true', default=None,
                        help="validate every bundle but never commit (also SEED_DRY_RUN)")
    parser.add_argument('--content-dir', default=None, help=f"content root (default: {config.CONTENT_DIR})")
    parser.add_argument('--log-level', choices=config.LOG_LEVELS, default=None,
                        help="log verbosity (default: SEED_LOG_LEVEL or info)")
    parser.add_argument('--init-schema', action='store_true', help="create missing tables before seeding")
    return parser

def print_report(report: SeedReport):
    mode = " (dry run)" if report.dry_run else ""
    print("\n" + "=" * 60)
    print(f"📊 Seed Summary{mode}:")
    for result in report.results:
        marker = OUTCOME_MARKERS[result.outcome]
        line = f"   {marker} {result.bundle_id}: {result.outcome.value}"
        if result.outcome in (BundleOutcome.APPLIED, BundleOutcome.VALIDATED):
            line += (f" ({result.lessons} lessons, {result.code_examples} examples,"
                     f" {result.quiz_questions} questions)")
        elif result.failure:
            line += f" [{result.failure.stage}] {result.failure.cause}: {result.failure.summary}"
        print(line)
    if report.aborted:
        print("   ⚠️  Stopped early (--fail-fast)")
    print(f"   Applied: {report.count(BundleOutcome.APPLIED)}  Skipped: {report.count(BundleOutcome.SKIPPED)}"
          f"  Validated: {report.count(BundleOutcome.VALIDATED)}  Failed: {report.count(BundleOutcome.FAILED)}")

def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        level = configure_logging(args.log_level)
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        engine = create_db_engine()
        if args.init_schema:
            verify_connection(engine)
            init_schema(engine)
        service = SeedService(engine=engine, content_dir=args.content_dir)
        report = service.run(
            only=args.only,
            area=args.area,
            fail_fast=args.fail_fast,
            dry_run=args.dry_run,
        )
    except SeedConfigurationError as e:
        logging.error(f"Seeding aborted: {e}")
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except (ArgumentError, ImportError) as e:
        # Malformed DATABASE_URL or missing database driver
        logging.error(f"Invalid database configuration: {e}")
        print(f"❌ Invalid database configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if level <= logging.CRITICAL:
        print_report(report)
    return exit_code_for(report)

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n🛑 Seeding interrupted; the in-flight bundle was rolled back")
        sys.exit(1)
