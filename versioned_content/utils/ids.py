import datetime

from bson import ObjectId


def new_id() -> str:
    """Generate a new, roughly time ordered, unique identifier."""
    return str(ObjectId())


def utcnow() -> datetime.datetime:
    """Return the current UTC time truncated to the millisecond.

    MongoDB stores datetimes with millisecond precision, so truncating here
    keeps timestamps identical before and after a round trip through the
    store.
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def as_utc(timestamp: datetime.datetime) -> datetime.datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=datetime.timezone.utc)
    return timestamp
