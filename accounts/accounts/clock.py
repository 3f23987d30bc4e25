from datetime import datetime, timezone


def utcnow() -> datetime:
    # naive UTC, so comparisons behave the same on sqlite and postgres
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)
