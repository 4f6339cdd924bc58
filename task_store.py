"""
Task record store.

Everything the scheduling engine reads or writes goes through these functions,
so the engine itself never builds queries.
"""
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from models import db, DaySnapshot, Task, DEFAULT_BUFFER_MIN, DEFAULT_DURATION_MIN
from services.validation_service import (
    normalize_dependency_ids,
    normalize_frequency,
    normalize_priority,
    parse_bool,
    parse_bounded_int,
    parse_datetime_value,
    parse_days_of_week,
    parse_int,
)
from time_utils import day_bounds

# camelCase names accepted from API callers.
FIELD_ALIASES = {
    'scheduledDate': 'scheduled_date',
    'scheduledEnd': 'scheduled_end',
    'durationMin': 'duration_min',
    'bufferBeforeMin': 'buffer_before_min',
    'bufferAfterMin': 'buffer_after_min',
    'isFixed': 'is_fixed',
    'dependencyIds': 'dependency_ids',
    'isRecurring': 'is_recurring',
    'recurringFrequency': 'recurring_frequency',
    'recurringInterval': 'recurring_interval',
    'daysOfWeek': 'days_of_week',
    'dayOfMonth': 'day_of_month',
    'monthOfYear': 'month_of_year',
    'endDate': 'end_date',
    'parentTaskId': 'parent_task_id',
    'nextDueDate': 'next_due_date',
    'userId': 'user_id',
}

DATETIME_FIELDS = {'scheduled_date', 'scheduled_end', 'end_date', 'next_due_date', 'completed_at'}
BOOL_FIELDS = {'completed', 'archived', 'is_fixed', 'is_recurring'}

UPDATABLE_FIELDS = {
    'title', 'category', 'priority', 'completed', 'completed_at', 'archived',
    'scheduled_date', 'scheduled_end', 'duration_min', 'buffer_before_min',
    'buffer_after_min', 'is_fixed', 'dependency_ids', 'next_due_date',
}


def _canonical_keys(fields):
    return {FIELD_ALIASES.get(key, key): value for key, value in (fields or {}).items()}


def _normalize_value(name, value):
    if name in DATETIME_FIELDS:
        parsed = parse_datetime_value(value)
        if value not in (None, '') and parsed is None:
            raise ValueError(f"Invalid datetime for {name}: {value}")
        return parsed
    if name in BOOL_FIELDS:
        return parse_bool(value)
    if name == 'priority':
        return normalize_priority(value)
    if name == 'duration_min':
        duration = parse_int(value)
        return duration if duration and duration > 0 else DEFAULT_DURATION_MIN
    if name in ('buffer_before_min', 'buffer_after_min'):
        return parse_int(value, default=DEFAULT_BUFFER_MIN, minimum=0)
    if name == 'dependency_ids':
        return normalize_dependency_ids(value)
    if name == 'recurring_frequency':
        return normalize_frequency(value)
    if name == 'recurring_interval':
        return parse_int(value, default=1, minimum=1)
    if name == 'days_of_week':
        return parse_days_of_week(value)
    if name == 'day_of_month':
        return parse_bounded_int(value, 1, 31)
    if name == 'month_of_year':
        return parse_bounded_int(value, 0, 11)
    if name in ('title', 'category'):
        return (str(value).strip() if value is not None else '') or None
    return value


def normalize_task_fields(fields, partial=False):
    """
    Coerce raw task fields into column values. Raises ValueError on input the
    store cannot hold; out-of-range buffers and durations are corrected instead.
    """
    data = _canonical_keys(fields)
    known = {c.name for c in Task.__table__.columns}
    cleaned = {}
    for name, value in data.items():
        if name not in known or name == 'id':
            continue
        cleaned[name] = _normalize_value(name, value)

    if not partial:
        if not cleaned.get('title'):
            raise ValueError('title is required')
        if cleaned.get('user_id') is None:
            raise ValueError('user_id is required')
        cleaned.setdefault('category', 'General')
        if cleaned.get('category') is None:
            cleaned['category'] = 'General'
        cleaned.setdefault('priority', 'medium')
    elif 'title' in cleaned and not cleaned['title']:
        raise ValueError('title cannot be empty')

    start = cleaned.get('scheduled_date')
    end = cleaned.get('scheduled_end')
    if start and end and end <= start:
        raise ValueError('scheduled_end must be after scheduled_date')
    return cleaned


def create_record(fields, commit=True):
    task = Task(**normalize_task_fields(fields))
    db.session.add(task)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return task


def get_record(task_id, user_id=None):
    query = Task.query.filter(Task.id == str(task_id))
    if user_id is not None:
        query = query.filter(Task.user_id == user_id)
    return query.first()


def get_events_by_date(user_id, day_value):
    """
    The user's schedulable events starting on `day_value`, earliest first.
    Archived tasks and recurring templates are excluded.
    """
    if not isinstance(day_value, date):
        raise ValueError('A calendar date is required')
    start, end = day_bounds(day_value)
    return Task.query.filter(
        Task.user_id == user_id,
        Task.archived.is_(False),
        Task.is_recurring.is_(False),
        Task.scheduled_date >= start,
        Task.scheduled_date < end,
    ).order_by(Task.scheduled_date.asc(), Task.id.asc()).all()


load_events_for_user_on_date = get_events_by_date


def get_recurring_parents():
    return Task.query.filter(Task.is_recurring.is_(True)).order_by(Task.created_at.asc()).all()


def get_child_tasks(parent_id):
    return Task.query.filter(
        Task.parent_task_id == parent_id
    ).order_by(Task.next_due_date.asc()).all()


def get_latest_child(parent_id):
    return Task.query.filter(
        Task.parent_task_id == parent_id
    ).order_by(Task.next_due_date.desc()).first()


def get_owned_ids(user_id, task_ids):
    ids = [str(task_id) for task_id in task_ids]
    if not ids:
        return set()
    rows = db.session.query(Task.id).filter(Task.id.in_(ids), Task.user_id == user_id).all()
    return {row[0] for row in rows}


def bulk_update_tasks(updates):
    """
    Apply `[{'id': ..., 'fields': {...}}]` in a single commit.
    Every update is validated before anything is written; unknown ids are skipped.
    """
    prepared = []
    for update in updates or []:
        task_id = update.get('id')
        if not task_id:
            raise ValueError('Each update needs an id')
        fields = _canonical_keys(update.get('fields') or update.get('updates') or {})
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        prepared.append((str(task_id), normalize_task_fields(fields, partial=True)))

    if not prepared:
        return []

    tasks = {t.id: t for t in Task.query.filter(Task.id.in_([tid for tid, _ in prepared])).all()}
    updated = []
    try:
        for task_id, fields in prepared:
            task = tasks.get(task_id)
            if not task:
                continue
            for name, value in fields.items():
                setattr(task, name, value)
            updated.append(task)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return updated


batch_update_records = bulk_update_tasks


def create_snapshot(user_id, day_value, payload):
    snapshot = DaySnapshot(user_id=user_id, day=day_value, payload=payload)
    db.session.add(snapshot)
    db.session.commit()
    return snapshot


def get_snapshot(snapshot_id, user_id):
    return DaySnapshot.query.filter_by(id=str(snapshot_id), user_id=user_id).first()
