"""Extracted day-schedule route handlers from app.py."""
from sqlalchemy.exc import SQLAlchemyError

import task_store
from conflict_service import detect_conflicts
from rescheduling_service import (
    apply_rescheduling,
    parse_changes,
    restore_day_schedule,
    snapshot_day_schedule,
    suggest_rescheduling,
)
from services.validation_service import parse_day_value


def _storage_failure(a, message, exc):
    a.db.session.rollback()
    a.app.logger.error(f"{message}: {exc}")
    return a.jsonify({'error': message}), 500


def _day_from_request(a):
    raw = a.request.args.get('date')
    if raw is None and a.request.is_json:
        raw = (a.request.get_json(silent=True) or {}).get('date')
    return parse_day_value(raw) if raw else None


def schedule_events():
    import app as a
    user = a.get_current_user()
    if not user:
        return a.jsonify({'error': 'No user selected'}), 401
    day_obj = _day_from_request(a)
    if not day_obj:
        return a.jsonify({'error': 'Invalid date'}), 400
    try:
        events = task_store.get_events_by_date(user.id, day_obj)
    except SQLAlchemyError as e:
        return _storage_failure(a, 'Could not load your schedule', e)
    return a.jsonify({'date': day_obj.isoformat(), 'events': [ev.to_dict() for ev in events]})


def schedule_conflicts():
    import app as a
    user = a.get_current_user()
    if not user:
        return a.jsonify({'error': 'No user selected'}), 401
    day_obj = _day_from_request(a)
    if not day_obj:
        return a.jsonify({'error': 'Invalid date'}), 400
    try:
        conflicts, graph = detect_conflicts(user.id, day_obj)
    except SQLAlchemyError as e:
        return _storage_failure(a, 'Could not load your schedule', e)
    return a.jsonify({
        'date': day_obj.isoformat(),
        'has_conflicts': bool(conflicts),
        'conflicts': [c.to_dict() for c in conflicts],
        'graph': graph.to_dict(),
    })


def schedule_proposals():
    import app as a
    user = a.get_current_user()
    if not user:
        return a.jsonify({'error': 'No user selected'}), 401
    day_obj = _day_from_request(a)
    if not day_obj:
        return a.jsonify({'error': 'Invalid date'}), 400
    try:
        proposals = suggest_rescheduling(user.id, day_obj)
    except SQLAlchemyError as e:
        return _storage_failure(a, 'Could not load your schedule', e)
    return a.jsonify({'date': day_obj.isoformat(), 'proposals': [p.to_dict() for p in proposals]})


def schedule_apply():
    import app as a
    user = a.get_current_user()
    if not user:
        return a.jsonify({'error': 'No user selected'}), 401

    data = a.request.get_json(silent=True) or {}
    changes = data.get('changes')
    if not changes or not isinstance(changes, list):
        return a.jsonify({'error': 'changes list is required'}), 400
    day_obj = None
    if data.get('date'):
        day_obj = parse_day_value(data.get('date'))
        if not day_obj:
            return a.jsonify({'error': 'Invalid date'}), 400

    try:
        # Reject bad changes before a snapshot is written.
        parse_changes(changes)
        snapshot_id = snapshot_day_schedule(user.id, day_obj) if day_obj else None
        updated = apply_rescheduling(user.id, changes)
    except ValueError as e:
        a.db.session.rollback()
        return a.jsonify({'error': str(e)}), 400
    except SQLAlchemyError as e:
        return _storage_failure(a, 'Could not update your schedule', e)
    return a.jsonify({
        'snapshot_id': snapshot_id,
        'updated': [task.to_dict() for task in updated],
    })


def schedule_snapshot_create():
    import app as a
    user = a.get_current_user()
    if not user:
        return a.jsonify({'error': 'No user selected'}), 401
    day_obj = _day_from_request(a)
    if not day_obj:
        return a.jsonify({'error': 'Invalid date'}), 400
    try:
        snapshot_id = snapshot_day_schedule(user.id, day_obj)
    except SQLAlchemyError as e:
        return _storage_failure(a, 'Could not save a snapshot of your schedule', e)
    return a.jsonify({'snapshot_id': snapshot_id, 'date': day_obj.isoformat()}), 201


def schedule_snapshot_restore(snapshot_id):
    import app as a
    user = a.get_current_user()
    if not user:
        return a.jsonify({'error': 'No user selected'}), 401
    try:
        restored = restore_day_schedule(user.id, snapshot_id)
    except SQLAlchemyError as e:
        return _storage_failure(a, 'Could not restore your schedule', e)
    if restored is None:
        return a.jsonify({'error': 'Snapshot not found'}), 404
    return a.jsonify({'restored': [task.to_dict() for task in restored]})
