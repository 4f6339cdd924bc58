"""
Rescheduling proposals, application of chosen changes, and day snapshots.

Proposals are greedy: each one moves a single event to resolve a single
conflict and does not look for conflicts the move might create. Callers
re-run detection after applying one.
"""
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from flask import current_app

import task_store
from conflict_service import (
    DEPENDENCY,
    buffer_after,
    buffer_before,
    detect_conflicts,
    duration_minutes,
    effective_end,
)
from services.validation_service import parse_datetime_value

MAX_PROPOSALS = 3
BASE_MOVE_COST = 10
HIGH_PRIORITY_MOVE_COST = 20
PRIORITY_RANK = {'low': 1, 'medium': 2, 'high': 3}


@dataclass
class Proposal:
    conflict: object
    changes: List[dict]
    cost: int
    proposal_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def impact(self):
        return f"Move {len(self.changes)} event(s) to resolve {self.conflict.type} conflict"

    def to_dict(self):
        return {
            'proposal_id': self.proposal_id,
            'changes': [
                {
                    'id': change['id'],
                    'new_start': change['new_start'].isoformat(),
                    'new_end': change['new_end'].isoformat(),
                }
                for change in self.changes
            ],
            'cost': self.cost,
            'impact': self.impact,
            'conflict': {'type': self.conflict.type, 'ids': list(self.conflict.ids)},
        }


def _priority_rank(task):
    return PRIORITY_RANK.get((task.priority or 'medium').lower(), PRIORITY_RANK['medium'])


def choose_mover(conflict):
    """
    Return (mover, stationary, cost) for a conflict, or None when nothing may move.

    A dependent task is only ever moved after its dependency. Otherwise a
    movable event beats a fixed one, the lower priority event moves, and on
    equal priority the second event of the pair (the later one) moves.
    """
    first, second = conflict.first, conflict.second
    if conflict.type == DEPENDENCY:
        if first.is_fixed:
            return None
        cost = BASE_MOVE_COST if second.is_fixed else _move_cost(first)
        return first, second, cost

    if first.is_fixed and second.is_fixed:
        return None
    if first.is_fixed:
        return second, first, BASE_MOVE_COST
    if second.is_fixed:
        return first, second, BASE_MOVE_COST

    if _priority_rank(first) < _priority_rank(second):
        mover, stationary = first, second
    else:
        mover, stationary = second, first
    return mover, stationary, _move_cost(mover)


def _move_cost(task):
    return HIGH_PRIORITY_MOVE_COST if (task.priority or '').lower() == 'high' else BASE_MOVE_COST


def propose_move(mover, stationary):
    new_start = (
        effective_end(stationary)
        + timedelta(minutes=buffer_after(stationary))
        + timedelta(minutes=buffer_before(mover))
    )
    new_end = new_start + timedelta(minutes=duration_minutes(mover))
    return {'id': mover.id, 'new_start': new_start, 'new_end': new_end}


def build_proposals(conflicts, limit=MAX_PROPOSALS) -> List[Proposal]:
    proposals = []
    for conflict in conflicts:
        choice = choose_mover(conflict)
        if not choice:
            continue
        mover, stationary, cost = choice
        proposals.append(Proposal(conflict, [propose_move(mover, stationary)], cost))
    # sorted() is stable, so equal costs keep detection order.
    return sorted(proposals, key=lambda p: p.cost)[:limit]


def suggest_rescheduling(user_id, day_value, limit=MAX_PROPOSALS):
    conflicts, _graph = detect_conflicts(user_id, day_value)
    return build_proposals(conflicts, limit=limit)


def _first_value(change, *keys):
    for key in keys:
        if change.get(key):
            return change[key]
    return None


def _change_times(change):
    if not isinstance(change, dict):
        raise ValueError('Each change must be an object')
    start = parse_datetime_value(_first_value(change, 'new_start', 'newStart', 'scheduled_date', 'scheduledDate'))
    end = parse_datetime_value(_first_value(change, 'new_end', 'newEnd', 'scheduled_end', 'scheduledEnd'))
    if not change.get('id') or not start:
        raise ValueError('Each change needs an id and a valid start')
    if end and end <= start:
        raise ValueError('Each change must end after it starts')
    return str(change['id']), start, end


def parse_changes(changes):
    """Validate a list of time changes, returning (id, start, end) tuples."""
    return [_change_times(change) for change in changes or []]


def apply_rescheduling(user_id, changes):
    """
    Write new start/end times for the user's own events in one batch.
    Changes for ids the user does not own are ignored.
    """
    parsed = parse_changes(changes)
    owned = task_store.get_owned_ids(user_id, [task_id for task_id, _, _ in parsed])
    updates = [
        {'id': task_id, 'fields': {'scheduled_date': start, 'scheduled_end': end}}
        for task_id, start, end in parsed
        if task_id in owned
    ]
    skipped = len(parsed) - len(updates)
    if skipped:
        current_app.logger.warning(f"Ignored {skipped} rescheduling change(s) not owned by user {user_id}")
    updated = task_store.bulk_update_tasks(updates)
    current_app.logger.info(f"Applied rescheduling for user {user_id}: {len(updated)} event(s) moved")
    return updated


def snapshot_day_schedule(user_id, day_value):
    events = task_store.get_events_by_date(user_id, day_value)
    payload = [
        {
            'id': ev.id,
            'scheduled_date': ev.scheduled_date.isoformat() if ev.scheduled_date else None,
            'scheduled_end': ev.scheduled_end.isoformat() if ev.scheduled_end else None,
            'duration_min': ev.duration_min,
        }
        for ev in events
    ]
    snapshot = task_store.create_snapshot(user_id, day_value, payload)
    current_app.logger.info(f"Created schedule snapshot {snapshot.id} for user {user_id} on {day_value.isoformat()}")
    return snapshot.id


def restore_day_schedule(user_id, snapshot_id) -> Optional[list]:
    """
    Put the snapshotted times back on events the user still owns.
    Returns None when the snapshot is unknown to this user.
    """
    snapshot = task_store.get_snapshot(snapshot_id, user_id)
    if not snapshot:
        return None
    entries = snapshot.payload or []
    owned = task_store.get_owned_ids(user_id, [entry['id'] for entry in entries])
    updates = [
        {
            'id': entry['id'],
            'fields': {
                'scheduled_date': entry.get('scheduled_date'),
                'scheduled_end': entry.get('scheduled_end'),
                'duration_min': entry.get('duration_min'),
            },
        }
        for entry in entries
        if entry['id'] in owned
    ]
    restored = task_store.bulk_update_tasks(updates)
    current_app.logger.info(f"Restored schedule snapshot {snapshot.id} for user {user_id}: {len(restored)} event(s)")
    return restored
