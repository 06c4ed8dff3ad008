#!/usr/bin/env python3
"""
Database Check Script
Prints topics with their lesson counts and which content bundles are still pending.
"""

import sys

from core.content_loader import ContentLoader
from core.database import create_db_engine, schema_exists, verify_connection
from core.errors import SeedConfigurationError
from services.report_service import ReportService
from utils.log_setup import configure_logging

def print_status(report: ReportService, pending):
    topics = report.topic_status()
    print("📚 Current Topic & Lesson Status:\n")
    for topic in topics:
        status = "✅" if topic["lesson_count"] > 0 else "❌"
        print(f"{status} {topic['name']} ({topic['slug']}): {topic['lesson_count']} lesson(s)")

    totals = report.totals()
    print(f"\n📊 Total Topics: {totals['topics']}")
    print(f"📊 Total Lessons: {totals['lessons']}")
    print(f"📊 Code Examples: {totals['code_examples']}")
    print(f"📊 Quiz Questions: {totals['quiz_questions']}")
    print(f"📊 Applied Bundles: {totals['migrations']}")

    empty = [t for t in topics if t["lesson_count"] == 0]
    if empty:
        print("\n🎯 Topics needing lessons:")
        for topic in empty:
            print(f"   - {topic['name']} ({topic['slug']})")

    if pending:
        print("\n⏳ Bundles not yet applied:")
        for bundle_id in pending:
            print(f"   - {bundle_id}")
    else:
        print("\n🎉 Every content bundle has been applied")

def main() -> int:
    configure_logging("silent")
    engine = create_db_engine()
    try:
        verify_connection(engine)
        if not schema_exists(engine):
            print("⚠️  Seeder tables are missing - run init_db.py first")
            return 2
        bundles = ContentLoader().load_all()
    except SeedConfigurationError as e:
        print(f"❌ {e}")
        return 2

    report = ReportService(engine)
    print_status(report, report.pending_bundles(bundles))
    return 0

if __name__ == "__main__":
    sys.exit(main())
