import threading

from finance_tracker.services.cron_service import CronService


def test_run_now_invokes_processor_and_records_time():
    calls = []

    def processor():
        calls.append(1)
        return 3

    cron = CronService(processor)
    assert cron.last_run_at is None
    assert cron.run_now() == 3
    assert calls == [1]
    assert cron.last_run_at is not None


def test_processor_failure_is_swallowed():
    def processor():
        raise RuntimeError("boom")

    cron = CronService(processor)
    assert cron.run_now() is None
    assert cron.last_run_at is not None


def test_start_runs_once_immediately_and_stop_is_clean():
    ran = threading.Event()

    def processor():
        ran.set()
        return 0

    cron = CronService(processor, hour=3, minute=15)
    cron.start()
    try:
        assert cron.running
        # Duplicate start is ignored
        cron.start()
        assert ran.wait(timeout=10)
    finally:
        cron.stop()
    assert not cron.running
    # Stopping twice is harmless
    cron.stop()


def test_start_without_startup_run_only_schedules_daily_job():
    cron = CronService(lambda: 0, hour=0, minute=0, run_on_startup=False)
    cron.start()
    try:
        jobs = cron._scheduler.get_jobs()
        assert [j.id for j in jobs] == ["process_recurring_daily"]
    finally:
        cron.stop()
