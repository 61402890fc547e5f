#!/usr/bin/env python3
"""
Script to bulk-load guards from a JSON file.
Run this after the database migration has been completed.

Usage:
    python import_guards.py <guards.json>

The file holds a JSON list of guard objects in the same shape the API accepts
on POST /api/v1/guards. Each record is created on its own; a bad record is
reported and skipped.
"""

import json
import logging
import sys
from pathlib import Path

# Add the apps/api directory to the path so we can import guard_api
api_dir = Path(__file__).parent / "apps" / "api"
sys.path.insert(0, str(api_dir))

from guard_api.core.config import Settings
from guard_api.core.database import create_db_engine, create_session_factory
from guard_api.core.errors import GuardError
from guard_api.services.guard_service import GuardService

def import_guards(records: list, settings: Settings) -> tuple[int, int]:
    """Create each guard through GuardService; returns (created, failed)."""
    SessionLocal = create_session_factory(create_db_engine(settings.database_url))
    db = SessionLocal()
    service = GuardService(db, settings, logging.getLogger("import_guards"))

    created = failed = 0
    try:
        for index, record in enumerate(records):
            try:
                guard = service.create_guard(record)
            except GuardError as e:
                failed += 1
                print(f"❌ Record {index}: {e.message}")
                continue
            created += 1
            print(f"✅ Record {index}: {guard.employee_id} {guard.full_name} ({guard.guard_id})")
    finally:
        db.close()

    return created, failed

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python import_guards.py <guards.json>")
        sys.exit(1)

    path = Path(sys.argv[1])
    if not path.is_file():
        print(f"❌ File not found: {path}")
        sys.exit(1)

    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print(f"❌ Invalid JSON in {path}: {e}")
        sys.exit(1)

    if not isinstance(records, list):
        print("❌ Expected a JSON list of guard objects")
        sys.exit(1)

    settings = Settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    created, failed = import_guards(records, settings)
    print(f"\nImported {created} guard(s), {failed} failed.")
    sys.exit(0 if failed == 0 else 1)
