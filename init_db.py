#!/usr/bin/env python3
"""
Database Initialization Script
Creates the topics, lessons, code_examples, quiz_questions and migrations tables.
"""

import sys
import argparse

from core.database import create_db_engine, init_schema, verify_connection
from core.errors import SeedConnectionError
from utils.log_setup import configure_logging

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="seed-init-db", description="Create the curriculum database schema.")
    parser.add_argument('--reset', action='store_true', help="drop the seeder tables before creating them")
    args = parser.parse_args(argv)

    configure_logging()
    print("🔧 Initializing database...")

    engine = create_db_engine()
    try:
        verify_connection(engine)
    except SeedConnectionError as e:
        print(f"❌ {e}")
        return 2

    init_schema(engine, reset=args.reset)
    print("✅ Database schema created successfully")
    return 0

if __name__ == "__main__":
    sys.exit(main())
