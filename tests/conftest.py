import os

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['BOOTSTRAP_JOBS_ON_IMPORT'] = '0'
os.environ['ENABLE_SCHEDULE_JOBS'] = '0'

import pytest

import task_store
from app import app as flask_app
from models import db, User


@pytest.fixture
def app():
    """App with a fresh in-memory database per test."""
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def user(app):
    user = User(username='alice')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def other_user(app):
    user = User(username='bob')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def client(app, user):
    test_client = app.test_client()
    with test_client.session_transaction() as sess:
        sess['user_id'] = user.id
    return test_client


@pytest.fixture
def make_event(app, user):
    """Create a scheduled task for `user` (or `owner`) starting at `start`."""

    def _make(title, start, end=None, owner=None, **fields):
        data = {
            'user_id': (owner or user).id,
            'title': title,
            'scheduled_date': start,
            'scheduled_end': end,
        }
        data.update(fields)
        return task_store.create_record(data)

    return _make
