from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import (
    AuditLog,
    LabourProfile,
    LabourProfileStatus,
    NotificationPriority,
    NotificationType,
    VerificationStatus,
)

PROFILE = {
    "name": "Ram Thapa",
    "email": "ram.thapa@example.com",
    "phone": "+977 9800000000",
    "nationality": "Nepali",
    "passportNumber": "PA123456",
    "dateOfBirth": "1994-05-12",
    "languages": ["Nepali", "Hindi"],
    "experienceYears": "6",
}


def test_agency_adds_a_profile_for_review(client, seed, auth, engine):
    agency_user, agency = seed.agency()

    response = client.post("/api/agencies/labour-profiles", json=PROFILE, headers=auth(agency_user))

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Ram Thapa"
    assert body["passportNumber"] == "PA123456"
    assert body["dateOfBirth"] == "1994-05-12"
    assert body["status"] == "RECEIVED"
    assert body["verificationStatus"] == "PENDING"
    assert body["agency"]["agencyName"] == agency.agency_name

    with Session(engine) as session:
        [entry] = session.execute(
            select(AuditLog).where(AuditLog.entity_id == body["id"])
        ).scalars().all()
        assert entry.action == "LABOUR_PROFILE_CREATED"


def test_profile_needs_a_name_and_a_valid_email(client, seed, auth):
    agency_user, _ = seed.agency()

    nameless = client.post("/api/agencies/labour-profiles", json={"nationality": "Nepali"}, headers=auth(agency_user))
    bad_email = client.post(
        "/api/agencies/labour-profiles", json={**PROFILE, "email": "not-an-email"}, headers=auth(agency_user)
    )

    assert nameless.status_code == 422
    assert bad_email.status_code == 422


def test_agency_sees_only_its_own_profiles_newest_first(client, seed, auth):
    agency_user, agency = seed.agency("Kathmandu Manpower")
    _, other = seed.agency("Dhaka Overseas")
    headers = auth(agency_user)
    client.post("/api/agencies/labour-profiles", json={**PROFILE, "name": "First"}, headers=headers)
    client.post("/api/agencies/labour-profiles", json={**PROFILE, "name": "Second"}, headers=headers)
    seed.profile(other, name="Elsewhere")

    response = client.get("/api/agencies/labour-profiles", headers=headers)

    assert response.status_code == 200
    assert [p["name"] for p in response.json()["labourProfiles"]] == ["Second", "First"]


def test_only_agencies_manage_their_profiles(client, seed, auth):
    admin = seed.admin()

    response = client.post("/api/agencies/labour-profiles", json=PROFILE, headers=auth(admin))

    assert response.status_code == 403


def test_admin_lists_profiles_by_status(client, seed, auth):
    admin = seed.admin()
    _, agency = seed.agency()
    seed.profile(agency, name="Waiting", status=LabourProfileStatus.RECEIVED)
    seed.profile(agency, name="Ready")

    response = client.get("/api/admin/labour-profiles?status=RECEIVED", headers=auth(admin))

    assert response.status_code == 200
    assert [p["name"] for p in response.json()["labourProfiles"]] == ["Waiting"]


def test_approved_and_verified_profile_can_be_assigned(client, seed, auth):
    admin = seed.admin()
    _, company = seed.client()
    agency_user, agency = seed.agency()
    _, (mason,) = seed.requirement(company, roles=(("Mason", 1),))
    seed.forward(mason, agency)
    created = client.post("/api/agencies/labour-profiles", json=PROFILE, headers=auth(agency_user)).json()

    unreviewed = client.post(
        f"/api/requirements/{mason.id}/assign", json={"profileIds": [created["id"]]}, headers=auth(agency_user)
    )
    assert unreviewed.status_code == 400

    review = client.put(
        f"/api/admin/labour-profiles/{created['id']}/status",
        json={"status": "APPROVED", "verificationStatus": "VERIFIED"},
        headers=auth(admin),
    )
    assert review.status_code == 200
    assert review.json()["status"] == "APPROVED"
    assert review.json()["verificationStatus"] == "VERIFIED"

    assigned = client.post(
        f"/api/requirements/{mason.id}/assign", json={"profileIds": [created["id"]]}, headers=auth(agency_user)
    )
    assert assigned.status_code == 200
    assert [a["labourId"] for a in assigned.json()["assignments"]] == [created["id"]]

    [notice] = [
        n for n in seed.notifications(agency_user) if n.type == NotificationType.LABOUR_PROFILE_STATUS_CHANGED
    ]
    assert notice.message == "Ram Thapa is now approved."
    assert notice.priority == NotificationPriority.NORMAL


def test_rejection_keeps_the_verification_and_warns_the_agency(client, seed, auth):
    admin = seed.admin()
    agency_user, agency = seed.agency()
    profile = seed.profile(
        agency, status=LabourProfileStatus.UNDER_REVIEW, verification=VerificationStatus.PARTIALLY_VERIFIED
    )

    response = client.put(
        f"/api/admin/labour-profiles/{profile.id}/status", json={"status": "REJECTED"}, headers=auth(admin)
    )

    assert response.status_code == 200
    stored = seed.get(LabourProfile, profile.id)
    assert stored.status == LabourProfileStatus.REJECTED
    assert stored.verification_status == VerificationStatus.PARTIALLY_VERIFIED
    [notice] = seed.notifications(agency_user)
    assert notice.priority == NotificationPriority.HIGH


def test_placed_labour_cannot_be_reviewed(client, seed, auth):
    admin = seed.admin()
    _, agency = seed.agency()
    profile = seed.profile(agency, status=LabourProfileStatus.SHORTLISTED)

    response = client.put(
        f"/api/admin/labour-profiles/{profile.id}/status", json={"status": "APPROVED"}, headers=auth(admin)
    )

    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"
    assert seed.get(LabourProfile, profile.id).status == LabourProfileStatus.SHORTLISTED


def test_review_is_admin_only_and_limited_to_review_statuses(client, seed, auth):
    admin = seed.admin()
    agency_user, agency = seed.agency()
    profile = seed.profile(agency, status=LabourProfileStatus.RECEIVED)
    url = f"/api/admin/labour-profiles/{profile.id}/status"

    assert client.put(url, json={"status": "APPROVED"}, headers=auth(agency_user)).status_code == 403
    assert client.put(url, json={"status": "DEPLOYED"}, headers=auth(admin)).status_code == 422
    assert client.put(
        "/api/admin/labour-profiles/00000000-0000-0000-0000-000000000000/status",
        json={"status": "APPROVED"},
        headers=auth(admin),
    ).status_code == 404
