import uuid

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime

db = SQLAlchemy()

DEFAULT_DURATION_MIN = 30
DEFAULT_BUFFER_MIN = 5
ALLOWED_PRIORITIES = {'low', 'medium', 'high'}
ALLOWED_FREQUENCIES = {'daily', 'weekly', 'biweekly', 'monthly', 'yearly', 'custom'}


def _new_id():
    return uuid.uuid4().hex


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    tasks = db.relationship('Task', backref='owner', lazy=True, cascade="all, delete-orphan")
    snapshots = db.relationship('DaySnapshot', backref='user', lazy=True, cascade="all, delete-orphan")


class Task(db.Model):
    """
    A task, a scheduled event, or a recurring template.
    All datetimes are stored naive in the server's local timezone.
    """
    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(80), nullable=False, default='General')
    priority = db.Column(db.String(10), nullable=False, default='medium')  # low | medium | high
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    archived = db.Column(db.Boolean, nullable=False, default=False)
    archived_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Scheduling
    scheduled_date = db.Column(db.DateTime, nullable=True, index=True)
    scheduled_end = db.Column(db.DateTime, nullable=True)
    duration_min = db.Column(db.Integer, nullable=False, default=DEFAULT_DURATION_MIN)
    buffer_before_min = db.Column(db.Integer, nullable=False, default=DEFAULT_BUFFER_MIN)
    buffer_after_min = db.Column(db.Integer, nullable=False, default=DEFAULT_BUFFER_MIN)
    is_fixed = db.Column(db.Boolean, nullable=False, default=False)
    dependency_ids = db.Column(db.JSON, nullable=True)

    # Recurrence (template side)
    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    recurring_frequency = db.Column(db.String(20), nullable=True)
    recurring_interval = db.Column(db.Integer, nullable=True, default=1)
    days_of_week = db.Column(db.JSON, nullable=True)  # 0=Sunday .. 6=Saturday
    day_of_month = db.Column(db.Integer, nullable=True)
    month_of_year = db.Column(db.Integer, nullable=True)  # 0=January .. 11=December
    end_date = db.Column(db.DateTime, nullable=True)

    # Recurrence (instance side)
    parent_task_id = db.Column(db.String(32), nullable=True, index=True)
    next_due_date = db.Column(db.DateTime, nullable=True)

    def is_template(self):
        return bool(self.is_recurring)

    def dependency_list(self):
        return list(self.dependency_ids or [])

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'category': self.category,
            'priority': self.priority,
            'completed': self.completed,
            'completed_at': _iso(self.completed_at),
            'archived': self.archived,
            'scheduled_date': _iso(self.scheduled_date),
            'scheduled_end': _iso(self.scheduled_end),
            'duration_min': self.duration_min,
            'buffer_before_min': self.buffer_before_min,
            'buffer_after_min': self.buffer_after_min,
            'is_fixed': self.is_fixed,
            'dependency_ids': self.dependency_list(),
            'is_recurring': self.is_recurring,
            'recurring_frequency': self.recurring_frequency,
            'recurring_interval': self.recurring_interval,
            'days_of_week': list(self.days_of_week or []),
            'day_of_month': self.day_of_month,
            'month_of_year': self.month_of_year,
            'end_date': _iso(self.end_date),
            'parent_task_id': self.parent_task_id,
            'next_due_date': _iso(self.next_due_date),
            'created_at': _iso(self.created_at),
        }


class DaySnapshot(db.Model):
    """Times of one user's events on one day, kept for a coarse undo."""
    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    day = db.Column(db.Date, nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'day': _iso(self.day),
            'events': list(self.payload or []),
            'created_at': _iso(self.created_at),
        }
