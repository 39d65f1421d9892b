"""
Manual quote sync trigger.
Runs one synchronization of dollar rates, crypto and equity quotes for today
and prints the report as JSON.

Usage:
    python sync_quotes.py
"""

import json
import logging
import sys
from dotenv import load_dotenv

from db_engine import init_db
from services.quote_sync import QuoteSyncService

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def run_sync() -> dict:
    """Run a single sync and return the report in its outbound shape."""
    logger.info("=" * 60)
    logger.info("Running quote sync...")
    report = QuoteSyncService().sync()
    logger.info("=" * 60)
    return report.to_dict()


if __name__ == "__main__":
    init_db()
    result = run_sync()
    print(json.dumps(result, indent=2, ensure_ascii=False))
    # Non-zero exit only when every source failed
    sys.exit(1 if all(status == "error" for status in result["sources"].values()) else 0)
