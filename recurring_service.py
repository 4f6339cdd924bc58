"""Creation of recurring templates and generation of their instances."""
from flask import current_app

import task_store
from models import db
from recurrence import compute_next_due_date
from time_utils import now_local

# Fields an instance inherits from its template.
INHERITED_FIELDS = (
    'user_id', 'title', 'category', 'priority', 'duration_min',
    'buffer_before_min', 'buffer_after_min', 'is_fixed', 'dependency_ids',
)


def create_recurring_task(user_id, template_data, now=None):
    """Persist a recurring template and generate its first instance."""
    now = now or now_local()
    fields = dict(template_data or {})
    fields['user_id'] = user_id
    fields['is_recurring'] = True
    fields.pop('parent_task_id', None)
    fields.pop('parentTaskId', None)
    # Templates are never scheduled events themselves.
    for key in ('scheduled_date', 'scheduledDate', 'scheduled_end', 'scheduledEnd'):
        fields.pop(key, None)
    cleaned = task_store.normalize_task_fields(fields)
    if not cleaned.get('recurring_frequency'):
        raise ValueError('recurring_frequency is required')

    # Template and first instance are committed together.
    parent = task_store.create_record(cleaned, commit=False)
    try:
        create_next_instance(parent, now=now, commit=False)
    except (OverflowError, ValueError) as e:
        db.session.rollback()
        raise ValueError(f"Recurrence settings do not produce a valid next date: {e}") from e
    db.session.commit()
    current_app.logger.info(f"Created recurring task {parent.id} ({parent.title})")
    return parent


def _last_due_date(parent):
    latest = task_store.get_latest_child(parent.id)
    if latest and latest.next_due_date:
        return latest.next_due_date
    return parent.next_due_date


def create_next_instance(parent, now=None, commit=True):
    """
    Persist the template's next instance. Returns None when the template has
    no usable rule or its end date has been reached.
    """
    if not parent.is_template() or not parent.recurring_frequency:
        return None
    now = now or now_local()
    next_due = compute_next_due_date(parent, _last_due_date(parent), now=now)
    if not next_due:
        return None
    if parent.end_date and next_due > parent.end_date:
        current_app.logger.info(f"Recurring task {parent.id} ended on {parent.end_date.isoformat()}")
        return None

    fields = {name: getattr(parent, name) for name in INHERITED_FIELDS}
    fields.update({
        'completed': False,
        'is_recurring': False,
        'parent_task_id': parent.id,
        'next_due_date': next_due,
        'scheduled_date': next_due,
    })
    child = task_store.create_record(fields, commit=commit)
    current_app.logger.info(
        f"Created instance {child.id} of recurring task {parent.id} due {next_due.isoformat()}"
    )
    return child


def process_recurring_tasks(now=None):
    """
    Generate the next instance for every template whose latest instance is
    missing or already overdue. One template failing does not stop the others.
    Returns the number of instances created.
    """
    now = now or now_local()
    created = 0
    for parent in task_store.get_recurring_parents():
        parent_id = parent.id
        try:
            latest = task_store.get_latest_child(parent.id)
            if latest is None or (latest.next_due_date and latest.next_due_date < now):
                if create_next_instance(parent, now=now):
                    created += 1
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Error generating instance for recurring task {parent_id}: {e}")
    current_app.logger.info(f"Processed recurring tasks, {created} instance(s) created")
    return created


def get_child_tasks(parent_id):
    return task_store.get_child_tasks(parent_id)
