"""
Shared column helpers for the models.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current time; timestamp columns reject naive datetimes."""
    return datetime.now(timezone.utc)
