from app.core import scheduler as scheduler_module


def test_scheduler_is_off_when_disabled():
    scheduler_module.start_scheduler()

    status = scheduler_module.get_scheduler_status()
    assert status["running"] is False


def test_setup_jobs_registers_the_daily_reminder():
    scheduler_module.setup_jobs()
    try:
        status = scheduler_module.get_scheduler_status()
        assert [job["id"] for job in status["jobs"]] == ["stage_reminders_daily"]
        assert "hour='9'" in status["jobs"][0]["trigger"]
    finally:
        scheduler_module.scheduler.remove_job("stage_reminders_daily")
