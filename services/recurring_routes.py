"""Extracted recurring-task route handlers from app.py."""
from sqlalchemy.exc import SQLAlchemyError

import recurring_service
import task_store


def create_recurring():
    import app as a
    user = a.get_current_user()
    if not user:
        return a.jsonify({'error': 'No user selected'}), 401

    data = a.request.get_json(silent=True) or {}
    try:
        parent = recurring_service.create_recurring_task(user.id, data)
    except ValueError as e:
        a.db.session.rollback()
        return a.jsonify({'error': str(e)}), 400
    except SQLAlchemyError as e:
        a.db.session.rollback()
        a.app.logger.error(f"Error creating recurring task for user {user.id}: {e}")
        return a.jsonify({'error': 'Could not create recurring task'}), 500

    instances = task_store.get_child_tasks(parent.id)
    return a.jsonify({
        'task': parent.to_dict(),
        'instances': [child.to_dict() for child in instances],
    }), 201


def recurring_instances(task_id):
    import app as a
    user = a.get_current_user()
    if not user:
        return a.jsonify({'error': 'No user selected'}), 401
    parent = task_store.get_record(task_id, user_id=user.id)
    if not parent or not parent.is_recurring:
        return a.jsonify({'error': 'Recurring task not found'}), 404
    children = recurring_service.get_child_tasks(parent.id)
    return a.jsonify({'task_id': parent.id, 'instances': [child.to_dict() for child in children]})
