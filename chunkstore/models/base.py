from datetime import datetime
from datetime import timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
