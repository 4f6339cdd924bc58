from datetime import datetime

import pytz


def run_in_app_context(app, target, args=(), kwargs=None, on_error=None):
    """
    Call `target` inside the Flask app context. Failures are handed to
    `on_error`, or logged, so a scheduler thread never dies on them.
    """
    with app.app_context():
        try:
            return target(*args, **(kwargs or {}))
        except Exception as exc:
            if on_error:
                on_error(exc)
            else:
                app.logger.exception(f"Background job {getattr(target, '__name__', target)} failed")
            return None


def schedule_interval_job(scheduler, app, target, minutes, job_id, run_now=False):
    """
    Register `target` as an interval job. One instance at a time; missed runs
    collapse into a single catch-up run. With `run_now` the first run happens
    as soon as the scheduler starts instead of after the first interval.
    """
    options = {}
    if run_now:
        options['next_run_time'] = datetime.now(pytz.utc)
    return scheduler.add_job(
        run_in_app_context,
        'interval',
        minutes=minutes,
        args=(app, target),
        id=job_id,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        **options,
    )
