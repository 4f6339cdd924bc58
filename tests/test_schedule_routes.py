from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

import task_store
from models import DaySnapshot
from services import schedule_routes


def at(hour, minute=0):
    return datetime(2026, 3, 10, hour, minute)


def test_schedule_requires_a_user(app):
    client = app.test_client()
    res = client.get('/api/schedule/conflicts?date=2026-03-10')
    assert res.status_code == 401
    assert res.get_json()['error'] == 'No user selected'


def test_shared_api_key_selects_the_user(app, user, make_event, monkeypatch):
    monkeypatch.setitem(app.config, 'API_SHARED_KEY', 'secret')
    make_event('Standup', at(9), at(10))
    client = app.test_client()

    res = client.get('/api/schedule/events?date=2026-03-10',
                     headers={'X-API-Key': 'secret', 'X-User-Id': str(user.id)})
    assert res.status_code == 200
    assert [ev['title'] for ev in res.get_json()['events']] == ['Standup']

    res = client.get('/api/schedule/events?date=2026-03-10',
                     headers={'X-API-Key': 'wrong', 'X-User-Id': str(user.id)})
    assert res.status_code == 401


def test_schedule_rejects_bad_dates(client):
    assert client.get('/api/schedule/events').status_code == 400
    res = client.get('/api/schedule/conflicts?date=03/10/2026')
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Invalid date'


def test_conflicts_endpoint_reports_conflicts_and_graph(client, make_event):
    a = make_event('Standup', at(9), at(10))
    b = make_event('Review', at(9, 30), at(10, 30))

    body = client.get('/api/schedule/conflicts?date=2026-03-10').get_json()

    assert body['has_conflicts'] is True
    assert body['conflicts'][0]['type'] == 'overlap'
    assert body['conflicts'][0]['ids'] == [a.id, b.id]
    assert body['graph'] == {a.id: [b.id], b.id: [a.id]}


def test_conflicts_endpoint_on_a_clear_day(client, make_event):
    make_event('Standup', at(9), at(10))
    body = client.get('/api/schedule/conflicts?date=2026-03-10').get_json()
    assert body == {'date': '2026-03-10', 'has_conflicts': False, 'conflicts': [], 'graph': {}}


def test_proposals_then_apply_with_snapshot_and_restore(client, make_event):
    make_event('Standup', at(9), at(10), priority='high')
    lunch = make_event('Lunch', at(9, 30), at(10, 30), priority='low')

    proposals = client.get('/api/schedule/proposals?date=2026-03-10').get_json()['proposals']
    assert len(proposals) == 1
    assert proposals[0]['changes'][0]['id'] == lunch.id

    res = client.post('/api/schedule/apply', json={
        'date': '2026-03-10',
        'changes': proposals[0]['changes'],
    })
    assert res.status_code == 200
    body = res.get_json()
    assert body['snapshot_id']
    assert body['updated'][0]['scheduled_date'] == '2026-03-10T10:10:00'
    assert client.get('/api/schedule/conflicts?date=2026-03-10').get_json()['has_conflicts'] is False

    res = client.post(f"/api/schedule/snapshots/{body['snapshot_id']}/restore")
    assert res.status_code == 200
    assert task_store.get_record(lunch.id).scheduled_date == at(9, 30)


def test_apply_validates_its_payload(client, make_event):
    ev = make_event('Standup', at(9), at(10))
    assert client.post('/api/schedule/apply', json={}).status_code == 400
    assert client.post('/api/schedule/apply', json={'changes': 'nope'}).status_code == 400
    res = client.post('/api/schedule/apply', json={'changes': [{'id': ev.id, 'new_start': 'soon'}]})
    assert res.status_code == 400
    res = client.post('/api/schedule/apply', json={'date': 'bad', 'changes': [{'id': ev.id}]})
    assert res.status_code == 400


def test_snapshot_create_and_unknown_restore(client, make_event):
    make_event('Standup', at(9), at(10))
    res = client.post('/api/schedule/snapshots', json={'date': '2026-03-10'})
    assert res.status_code == 201
    assert res.get_json()['date'] == '2026-03-10'

    res = client.post('/api/schedule/snapshots/does-not-exist/restore')
    assert res.status_code == 404


def test_storage_failure_returns_500(client, monkeypatch):
    def broken(user_id, day_value):
        raise SQLAlchemyError('disk I/O error')

    monkeypatch.setattr(schedule_routes, 'detect_conflicts', broken)
    res = client.get('/api/schedule/conflicts?date=2026-03-10')
    assert res.status_code == 500
    assert res.get_json()['error'] == 'Could not load your schedule'


def test_create_recurring_task_endpoint(client):
    res = client.post('/api/tasks/recurring', json={
        'title': 'Standup',
        'recurringFrequency': 'weekly',
        'daysOfWeek': [1, 3],
        'nextDueDate': '2099-03-12T09:00:00',
    })
    assert res.status_code == 201
    body = res.get_json()
    assert body['task']['is_recurring'] is True
    assert body['task']['days_of_week'] == [1, 3]
    assert len(body['instances']) == 1
    assert body['instances'][0]['parent_task_id'] == body['task']['id']

    listing = client.get(f"/api/tasks/recurring/{body['task']['id']}/instances")
    assert listing.status_code == 200
    assert len(listing.get_json()['instances']) == 1


def test_create_recurring_task_endpoint_rejects_bad_input(client):
    res = client.post('/api/tasks/recurring', json={'title': 'Standup'})
    assert res.status_code == 400
    res = client.post('/api/tasks/recurring', json={'recurringFrequency': 'daily'})
    assert res.status_code == 400


def test_instances_of_unknown_or_plain_task_are_404(client, make_event):
    plain = make_event('Standup', at(9), at(10))
    assert client.get(f'/api/tasks/recurring/{plain.id}/instances').status_code == 404
    assert client.get('/api/tasks/recurring/missing/instances').status_code == 404



def test_sweep_cannot_be_triggered_over_http(client):
    assert client.post('/api/tasks/recurring/process', json={}).status_code == 404


def test_create_recurring_task_endpoint_rejects_out_of_range_recurrence(client):
    res = client.post('/api/tasks/recurring', json={
        'title': 'Someday',
        'recurringFrequency': 'yearly',
        'recurringInterval': 10 ** 6,
    })
    assert res.status_code == 400
    assert task_store.get_recurring_parents() == []


def test_rejected_apply_does_not_leave_a_snapshot(client, make_event):
    ev = make_event('Standup', at(9), at(10))
    res = client.post('/api/schedule/apply', json={
        'date': '2026-03-10',
        'changes': [{'id': ev.id, 'new_start': 'soon'}],
    })
    assert res.status_code == 400
    res = client.post('/api/schedule/apply', json={
        'date': '2026-03-10',
        'changes': [{'id': ev.id, 'new_start': '2026-03-10T11:00:00', 'new_end': '2026-03-10T10:00:00'}],
    })
    assert res.status_code == 400
    assert DaySnapshot.query.count() == 0
    assert task_store.get_record(ev.id).scheduled_date == at(9)
