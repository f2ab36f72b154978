#!/usr/bin/env python
# backend/passdesk/commands/maintenance.py
"""
Maintenance commands for PassDesk.

Runs the periodic housekeeping the engine relies on between requests:
sweeping expired reservations, expiring finished enrollments and moving
batches along scheduled -> active -> completed.

Usage:
    python -m passdesk.commands.maintenance run         # One maintenance pass
    python -m passdesk.commands.maintenance sweep       # Only sweep reservations
    python -m passdesk.commands.maintenance init-db     # Create missing tables
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from passdesk.database import SessionLocal, init_db
from passdesk.services.booking_engine import BookingEngine

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class MaintenanceCommand:
    """Maintenance command handler."""

    def __init__(self, session_factory=None) -> None:
        self.session_factory = session_factory or SessionLocal

    def run(self) -> Dict[str, Any]:
        """Run a full maintenance pass."""
        db = self.session_factory()
        try:
            summary = BookingEngine(db).run_maintenance()
            return {"status": "success", **summary}
        finally:
            db.close()

    def sweep(self) -> Dict[str, Any]:
        """Evict expired reservations only."""
        db = self.session_factory()
        try:
            swept = BookingEngine(db).reservations.sweep_expired()
            return {"status": "success", "reservations_swept": swept}
        finally:
            db.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the maintenance command."""
    parser = argparse.ArgumentParser(
        description="PassDesk Maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m passdesk.commands.maintenance run       # Full maintenance pass
  python -m passdesk.commands.maintenance sweep     # Expired reservations only
        """,
    )
    parser.add_argument("command", choices=["run", "sweep", "init-db"], help="Command to execute")
    args = parser.parse_args(argv)

    if args.command == "init-db":
        init_db()
        print(json.dumps({"status": "success"}))
        return 0

    command = MaintenanceCommand()
    result = command.run() if args.command == "run" else command.sweep()
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
