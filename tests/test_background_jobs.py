from apscheduler.schedulers.background import BackgroundScheduler

from background_jobs import run_in_app_context, schedule_interval_job


def test_run_in_app_context_returns_target_result(app):
    assert run_in_app_context(app, lambda x, y=0: x + y, args=(2,), kwargs={'y': 3}) == 5


def test_run_in_app_context_hands_errors_to_callback(app):
    errors = []

    def boom():
        raise RuntimeError('sweep failed')

    assert run_in_app_context(app, boom, on_error=errors.append) is None
    assert [str(e) for e in errors] == ['sweep failed']


def test_run_in_app_context_logs_errors_without_callback(app, caplog):
    def boom():
        raise RuntimeError('sweep failed')

    assert run_in_app_context(app, boom) is None
    assert 'boom failed' in caplog.text


def test_interval_job_allows_a_single_running_instance(app):
    scheduler = BackgroundScheduler()

    def sweep():
        return None

    job = schedule_interval_job(scheduler, app, sweep, minutes=15, job_id='recurring_task_sweep')
    job_again = schedule_interval_job(scheduler, app, sweep, minutes=30, job_id='recurring_task_sweep')

    assert job.id == job_again.id == 'recurring_task_sweep'
    assert job_again.max_instances == 1
    assert job_again.coalesce is True
    assert job_again.args == (app, sweep)


def test_interval_job_can_run_as_soon_as_the_scheduler_starts(app):
    scheduler = BackgroundScheduler()

    def sweep():
        return None

    job = schedule_interval_job(scheduler, app, sweep, minutes=15, job_id='recurring_task_sweep', run_now=True)

    assert job.next_run_time is not None
    assert job.max_instances == 1
