import os

from dotenv import load_dotenv
from flask import Flask, request, jsonify, session

load_dotenv()

from models import db, User
from apscheduler.schedulers.background import BackgroundScheduler
from background_jobs import schedule_interval_job
from recurring_service import process_recurring_tasks
from services import recurring_routes, schedule_routes

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///schedule.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['API_SHARED_KEY'] = os.environ.get('API_SHARED_KEY')  # Optional shared key for API callers
app.config['DEFAULT_TIMEZONE'] = os.environ.get('DEFAULT_TIMEZONE', 'America/New_York')
app.config['RECURRING_SWEEP_MINUTES'] = int(os.environ.get('RECURRING_SWEEP_MINUTES', 15))

db.init_app(app)
scheduler = None

def get_current_user():
    """Resolve the current user from a shared API key + user id header, else fall back to session."""
    # Header-based auth for service callers
    api_key = request.headers.get('X-API-Key')
    api_user_id = request.headers.get('X-User-Id')
    shared_key = app.config.get('API_SHARED_KEY')
    if shared_key and api_key and api_user_id:
        try:
            api_uid_int = int(api_user_id)
        except (TypeError, ValueError):
            api_uid_int = None
        if api_uid_int and api_key == shared_key:
            user = db.session.get(User, api_uid_int)
            if user:
                return user

    # Session-based auth for browser users
    user_id = session.get('user_id')
    if user_id:
        return db.session.get(User, user_id)
    return None

with app.app_context():
    db.create_all()


def _run_recurring_sweep():
    """Scheduled entry point for the recurring-task sweep."""
    created = process_recurring_tasks()
    if created:
        app.logger.info(f"Recurring sweep created {created} instance(s)")


def _start_scheduler():
    """Start the background scheduler that advances recurring tasks."""
    global scheduler
    if os.environ.get('ENABLE_SCHEDULE_JOBS', '1') != '1':
        return
    if scheduler and scheduler.running:
        return
    # Avoid double-start in Flask debug reloader
    if app.debug and os.environ.get('WERKZEUG_RUN_MAIN') != 'true':
        return
    scheduler = BackgroundScheduler(timezone=app.config.get('DEFAULT_TIMEZONE', 'UTC'))
    schedule_interval_job(
        scheduler,
        app,
        _run_recurring_sweep,
        minutes=app.config['RECURRING_SWEEP_MINUTES'],
        job_id='recurring_task_sweep',
        # Catch up on instances that fell due while the server was down
        run_now=True,
    )
    scheduler.start()


# Start scheduler on process startup (not request-dependent).
# Can be disabled for tooling/tests that only need app context.
if os.environ.get('BOOTSTRAP_JOBS_ON_IMPORT', '1') == '1':
    try:
        _start_scheduler()
    except Exception as e:
        app.logger.error(f"Error starting scheduler on startup: {e}")


# Schedule API
@app.route('/api/schedule/events', methods=['GET'])
def get_schedule_events():
    return schedule_routes.schedule_events()

@app.route('/api/schedule/conflicts', methods=['GET'])
def get_schedule_conflicts():
    return schedule_routes.schedule_conflicts()

@app.route('/api/schedule/proposals', methods=['GET'])
def get_schedule_proposals():
    return schedule_routes.schedule_proposals()

@app.route('/api/schedule/apply', methods=['POST'])
def apply_schedule_changes():
    return schedule_routes.schedule_apply()

@app.route('/api/schedule/snapshots', methods=['POST'])
def create_schedule_snapshot():
    return schedule_routes.schedule_snapshot_create()

@app.route('/api/schedule/snapshots/<snapshot_id>/restore', methods=['POST'])
def restore_schedule_snapshot(snapshot_id):
    return schedule_routes.schedule_snapshot_restore(snapshot_id)


# Recurring Tasks API
@app.route('/api/tasks/recurring', methods=['POST'])
def create_recurring_task():
    return recurring_routes.create_recurring()

@app.route('/api/tasks/recurring/<task_id>/instances', methods=['GET'])
def list_recurring_instances(task_id):
    return recurring_routes.recurring_instances(task_id)


if __name__ == '__main__':
    app.run(host='0.0.0.0', debug=True)
