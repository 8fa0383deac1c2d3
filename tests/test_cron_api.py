from datetime import timedelta

from app.config import settings
from app.models import DecisionStatus, NotificationPriority, NotificationType, Stage

SECRET = {"X-Cron-Secret": "test-cron-secret"}


def test_wrong_or_missing_secret_is_rejected(client):
    wrong = client.post("/api/cron/stage-reminders", headers={"X-Cron-Secret": "guess"})
    missing = client.post("/api/cron/stage-reminders")

    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Invalid cron secret"}
    assert missing.status_code == 401


def test_unconfigured_secret_disables_the_endpoint(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "")

    response = client.post("/api/cron/stage-reminders", headers=SECRET)

    assert response.status_code == 503


def test_stage_reminders_cover_only_stuck_assignments(client, seed):
    client_user, company = seed.client()
    agency_user, agency = seed.agency()
    _, (mason,) = seed.requirement(company, roles=(("Mason", 4),))
    seed.forward(mason, agency)
    stale = timedelta(days=10)
    seed.assignment(mason, agency, seed.profile(agency, name="Stuck Worker"), stage=Stage.VISA_APPLYING, age=stale)
    seed.assignment(mason, agency, seed.profile(agency), age=timedelta(days=1))
    seed.assignment(mason, agency, seed.profile(agency), stage=Stage.DEPLOYED, age=stale)
    seed.assignment(mason, agency, seed.profile(agency), admin_status=DecisionStatus.REJECTED, age=stale)

    response = client.post("/api/cron/stage-reminders", headers=SECRET)

    assert response.status_code == 200
    assert response.json() == {"success": True, "reminded": 1, "days": 7}
    for user in (client_user, agency_user):
        [reminder] = seed.notifications(user)
        assert reminder.type == NotificationType.STAGE_PENDING_ACTION
        assert reminder.priority == NotificationPriority.HIGH
        assert reminder.title == "Action pending: Visa Application"
        assert "Stuck Worker" in reminder.message

    relaxed = client.post("/api/cron/stage-reminders?days=30", headers=SECRET)
    assert relaxed.json() == {"success": True, "reminded": 0, "days": 30}
