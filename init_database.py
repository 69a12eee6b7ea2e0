#!/usr/bin/env python3
"""Database initialization script.

Creates the import intelligence schema, verifies the tables and indexes and
can seed the default column-mapping rules for a company.
"""

import argparse
import sys
import traceback
from pathlib import Path

from sqlalchemy import inspect

from import_engine.config import get_config
from import_engine.database.rule_repository import RuleRepository
from import_engine.database.schema import get_session_factory, init_database

EXPECTED_TABLES = [
    "product_types",
    "suppliers",
    "locations",
    "product_type_aliases",
    "model_aliases",
    "import_intelligence_rules",
    "inventory_assets",
    "expected_receiving_items",
]


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize the import intelligence database")
    parser.add_argument(
        "--db-path",
        type=Path,
        default=None,
        help="SQLite file to initialize (default: DATABASE_PATH from config)",
    )
    parser.add_argument(
        "--seed-company",
        action="append",
        default=[],
        metavar="COMPANY_ID",
        help="Seed default column-mapping rules for this company (repeatable)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Initialize database and verify setup."""
    args = parse_args(argv)

    print("=" * 50)
    print("Database Initialization")
    print("=" * 50)
    print()

    try:
        db_path = args.db_path or get_config().database_path
        print(f"Database path: {db_path}")
        print()

        print("Initializing database schema...")
        engine = init_database(db_path, echo=False)
        print("✓ Database initialized successfully")

        print()
        print("Verifying database schema...")
        inspector = inspect(engine)
        tables = inspector.get_table_names()

        print(f"Found {len(tables)} table(s):")
        for table in sorted(tables):
            marker = "✓" if table in EXPECTED_TABLES else "?"
            print(f"  {marker} {table}")

        missing_tables = [t for t in EXPECTED_TABLES if t not in tables]
        if missing_tables:
            print()
            print(f"⚠ Warning: Some expected tables are missing: {missing_tables}")
        else:
            print()
            print("✓ All expected tables are present")

        if "import_intelligence_rules" in tables:
            print()
            print("Indexes on import_intelligence_rules:")
            for idx in sorted(i["name"] for i in inspector.get_indexes("import_intelligence_rules")):
                print(f"  ✓ {idx}")

        if args.seed_company:
            repository = RuleRepository(get_session_factory(engine))
            print()
            for company_id in args.seed_company:
                created = repository.seed_default_column_rules(company_id)
                print(f"✓ Seeded {created} column mapping rules for company '{company_id}'")

        print()
        print("=" * 50)
        print("Database initialization completed successfully!")
        print("=" * 50)
        return 0

    except Exception as e:
        print()
        print("=" * 50)
        print(f"❌ Error initializing database: {e}")
        print("=" * 50)
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
