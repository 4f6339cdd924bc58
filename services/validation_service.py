from datetime import date, datetime

from models import ALLOWED_FREQUENCIES, ALLOWED_PRIORITIES


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ["1", "true", "yes", "on"]


def parse_day_value(raw):
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(str(raw), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def parse_datetime_value(raw):
    """Parse an ISO-8601 string into a naive datetime; return None on failure."""
    if not raw:
        return None
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    else:
        s = str(raw).strip()
        if s.endswith("Z"):
            s = s[:-1]
        try:
            value = datetime.fromisoformat(s)
        except (TypeError, ValueError):
            return None
    return value.replace(tzinfo=None) if value.tzinfo else value


def parse_days_of_week(raw):
    """Weekday numbers 0-6 with Sunday as 0."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set)):
        values = raw
    else:
        values = str(raw).split(",")
    days = []
    for val in values:
        try:
            day = int(val)
        except (TypeError, ValueError):
            continue
        if 0 <= day <= 6:
            days.append(day)
    return sorted(set(days))


def parse_int(raw, default=None, minimum=None):
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return minimum
    return value


def parse_bounded_int(raw, low, high):
    value = parse_int(raw)
    if value is None or not (low <= value <= high):
        return None
    return value


def normalize_priority(raw, default="medium"):
    if raw is None or str(raw).strip() == "":
        return default
    value = str(raw).strip().lower()
    if value not in ALLOWED_PRIORITIES:
        raise ValueError(f"Invalid priority: {raw}")
    return value


def normalize_frequency(raw):
    if raw is None or str(raw).strip() == "":
        return None
    value = str(raw).strip().lower()
    if value not in ALLOWED_FREQUENCIES:
        raise ValueError(f"Invalid recurring frequency: {raw}")
    return value


def normalize_dependency_ids(raw):
    """Ordered, de-duplicated list of task ids."""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    ids = []
    seen = set()
    for val in raw:
        key = str(val).strip()
        if key and key not in seen:
            seen.add(key)
            ids.append(key)
    return ids
