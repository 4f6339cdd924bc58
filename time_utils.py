from datetime import datetime, time, timedelta

import pytz
from flask import current_app, has_app_context

FALLBACK_TIMEZONE = 'America/New_York'


def now_local(tz_name=None):
    """Current wall-clock time in the configured timezone, as a naive datetime."""
    if not tz_name and has_app_context():
        tz_name = current_app.config.get('DEFAULT_TIMEZONE')
    tz = pytz.timezone(tz_name or FALLBACK_TIMEZONE)
    return datetime.now(tz).replace(tzinfo=None)


def day_bounds(day_value):
    """Return [start, end) datetimes covering a calendar day."""
    start = datetime.combine(day_value, time.min)
    return start, start + timedelta(days=1)
