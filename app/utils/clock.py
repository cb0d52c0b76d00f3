from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored time in the archive uses this clock."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
