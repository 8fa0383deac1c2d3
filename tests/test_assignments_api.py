from datetime import timedelta

import pytest

from app.models import (
    DecisionStatus,
    JobRole,
    JobRoleStatus,
    LabourAssignment,
    LabourProfile,
    LabourProfileStatus,
    NotificationPriority,
    NotificationType,
    Requirement,
    RequirementStatus,
    VerificationStatus,
)

PENDING = DecisionStatus.PENDING
SUBMITTED = DecisionStatus.SUBMITTED
ACCEPTED = DecisionStatus.ACCEPTED
REJECTED = DecisionStatus.REJECTED


@pytest.fixture
def placement(seed):
    """Client, agency and a forwarded Mason x2 role."""
    admin = seed.admin()
    client_user, company = seed.client("Gulf Builders")
    agency_user, agency = seed.agency("Kathmandu Manpower")
    requirement, (mason,) = seed.requirement(
        company, roles=(("Mason", 2),), status=RequirementStatus.FORWARDED
    )
    seed.forward(mason, agency, quantity=3)
    return {
        "admin": admin,
        "client_user": client_user,
        "agency_user": agency_user,
        "agency": agency,
        "requirement": requirement,
        "role": mason,
    }


def candidates(seed, placement, *states):
    """Seed one assignment per (admin, client, is_backup) state, oldest first."""
    created = []
    for index, (admin_status, client_status, is_backup) in enumerate(states):
        profile = seed.profile(placement["agency"], name=f"Candidate {index + 1}")
        created.append(seed.assignment(
            placement["role"],
            placement["agency"],
            profile,
            admin_status=admin_status,
            client_status=client_status,
            is_backup=is_backup,
            age=timedelta(hours=len(states) - index),
        ))
    return created


# ==================== Assigning profiles ====================

def test_agency_assigns_profiles_within_its_slots(client, seed, auth):
    admin = seed.admin()
    _, company = seed.client()
    agency_user, agency = seed.agency()
    requirement, (mason,) = seed.requirement(company, roles=(("Mason", 2),))
    seed.forward(mason, agency)
    profiles = seed.profiles(agency, 2)

    response = client.post(
        f"/api/requirements/{mason.id}/assign",
        json={"profileIds": [str(p.id) for p in profiles]},
        headers=auth(agency_user),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["jobRole"]["agencyStatus"] == "SUBMITTED"
    assert body["jobRole"]["needsMoreLabour"] is False
    assert len(body["jobRole"]["assignments"]) == 2
    assert [a["labourId"] for a in body["assignments"]] == [str(p.id) for p in profiles]
    for item in body["assignments"]:
        assert item["adminStatus"] == "PENDING"
        assert item["clientStatus"] == "PENDING"
        assert item["currentStage"] == "OFFER_LETTER_SIGN"
        assert item["labour"]["status"] == "SHORTLISTED"

    assert seed.get(Requirement, requirement.id).status == RequirementStatus.UNDER_REVIEW
    assert seed.get(LabourProfile, profiles[0].id).status == LabourProfileStatus.SHORTLISTED
    assert "New labour profiles submitted" in [n.title for n in seed.notifications(admin)]


def test_assigning_beyond_the_forwarded_quantity_is_refused(client, seed, auth):
    _, company = seed.client()
    agency_user, agency = seed.agency()
    _, (mason,) = seed.requirement(company, roles=(("Mason", 2),))
    seed.forward(mason, agency, quantity=1)
    profiles = seed.profiles(agency, 2)

    response = client.post(
        f"/api/requirements/{mason.id}/assign",
        json={"profileIds": [str(p.id) for p in profiles]},
        headers=auth(agency_user),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Exceeds available slots for this agency"
    assert response.json()["details"] == {"current": 0, "adding": 2, "remaining": 1, "max": 1}
    assert seed.get(JobRole, mason.id).assignments == []


@pytest.mark.parametrize("profile_kwargs", [
    {"status": LabourProfileStatus.SHORTLISTED},
    {"status": LabourProfileStatus.DEPLOYED},
    {"verification": VerificationStatus.PENDING},
])
def test_unavailable_profiles_cannot_be_assigned(client, seed, auth, profile_kwargs):
    _, company = seed.client()
    agency_user, agency = seed.agency()
    _, (mason,) = seed.requirement(company)
    seed.forward(mason, agency)
    profile = seed.profile(agency, **profile_kwargs)

    response = client.post(
        f"/api/requirements/{mason.id}/assign",
        json={"profileIds": [str(profile.id)]},
        headers=auth(agency_user),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Some profiles don't belong to your agency or aren't available"
    assert response.json()["details"]["missing"] == [str(profile.id)]


def test_profiles_of_another_agency_cannot_be_assigned(client, seed, auth):
    _, company = seed.client()
    agency_user, agency = seed.agency("Kathmandu Manpower")
    _, other = seed.agency("Dhaka Overseas")
    _, (mason,) = seed.requirement(company)
    seed.forward(mason, agency)
    foreign = seed.profile(other)

    response = client.post(
        f"/api/requirements/{mason.id}/assign",
        json={"profileIds": [str(foreign.id)]},
        headers=auth(agency_user),
    )

    assert response.status_code == 400
    assert response.json()["details"] == {"requested": 1, "found": 0, "missing": [str(foreign.id)]}


def test_agency_without_a_forwarding_cannot_assign(client, seed, auth):
    _, company = seed.client()
    agency_user, agency = seed.agency()
    _, (mason,) = seed.requirement(company)
    profile = seed.profile(agency)

    response = client.post(
        f"/api/requirements/{mason.id}/assign",
        json={"profileIds": [str(profile.id)]},
        headers=auth(agency_user),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "No forwarding record found for this agency and job role"


def test_partial_assignment_asks_for_more_labour(client, seed, auth):
    _, company = seed.client("Gulf Builders")
    agency_user, agency = seed.agency()
    requirement, (mason,) = seed.requirement(company, roles=(("Mason", 3),))
    seed.forward(mason, agency)
    profile = seed.profile(agency)

    response = client.post(
        f"/api/requirements/{mason.id}/assign",
        json={"profileIds": [str(profile.id)]},
        headers=auth(agency_user),
    )

    assert response.status_code == 200
    assert response.json()["jobRole"]["agencyStatus"] == "PARTIALLY_SUBMITTED"
    assert response.json()["jobRole"]["needsMoreLabour"] is True
    assert seed.get(Requirement, requirement.id).status == RequirementStatus.SUBMITTED

    [urgent] = [n for n in seed.notifications(agency_user) if n.type == NotificationType.REQUIREMENT_NEEDS_REVISION]
    assert urgent.title == "Urgent: More Labour Needed for Mason"
    assert urgent.priority == NotificationPriority.HIGH
    assert "Gulf Builders" in urgent.message


def test_reassigning_clears_rejected_placements(client, seed, auth, placement):
    turned_down = seed.profile(placement["agency"], status=LabourProfileStatus.REJECTED)
    rejected = seed.assignment(
        placement["role"], placement["agency"], turned_down, admin_status=REJECTED, client_status=PENDING
    )
    replacements = seed.profiles(placement["agency"], 3)

    response = client.post(
        f"/api/requirements/{placement['role'].id}/assign",
        json={"profileIds": [str(p.id) for p in replacements]},
        headers=auth(placement["agency_user"]),
    )

    assert response.status_code == 200
    assert len(response.json()["jobRole"]["assignments"]) == 3
    assert seed.get(LabourAssignment, rejected.id) is None
    assert seed.get(LabourProfile, rejected.labour_id).status == LabourProfileStatus.APPROVED


# ==================== Admin screening ====================

def test_admin_accepts_primaries_then_keeps_a_backup(client, seed, auth, placement):
    first, second, third = candidates(
        seed, placement, (PENDING, PENDING, False), (PENDING, PENDING, False), (PENDING, PENDING, False)
    )
    admin = auth(placement["admin"])

    responses = [
        client.put(f"/api/admin/assignments/{a.id}/status", json={"status": "ACCEPTED"}, headers=admin)
        for a in (first, second, third)
    ]

    assert [r.status_code for r in responses] == [200, 200, 200]
    assert [(r.json()["isBackup"], r.json()["clientStatus"]) for r in responses] == [
        (False, "SUBMITTED"),
        (False, "SUBMITTED"),
        (True, "PENDING"),
    ]
    assert seed.get(Requirement, placement["requirement"].id).status == RequirementStatus.CLIENT_REVIEW
    assert seed.get(JobRole, placement["role"].id).admin_status == JobRoleStatus.ACCEPTED

    titles = [n.title for n in seed.notifications(placement["client_user"])]
    assert titles.count("Candidate ready for review") == 2
    assert "Requirement status updated" in titles


def test_admin_rejection_needs_feedback(client, seed, auth, placement):
    [assignment] = candidates(seed, placement, (PENDING, PENDING, False))

    response = client.put(
        f"/api/admin/assignments/{assignment.id}/status",
        json={"status": "REJECTED", "feedback": "  "},
        headers=auth(placement["admin"]),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Feedback is required for rejection"


def test_rejecting_a_primary_promotes_the_backup(client, seed, auth, placement):
    first, second, backup = candidates(
        seed, placement, (ACCEPTED, SUBMITTED, False), (ACCEPTED, SUBMITTED, False), (ACCEPTED, PENDING, True)
    )

    response = client.put(
        f"/api/admin/assignments/{first.id}/status",
        json={"status": "REJECTED", "feedback": "Passport expires too soon"},
        headers=auth(placement["admin"]),
    )

    assert response.status_code == 200
    assert response.json()["adminStatus"] == "REJECTED"
    assert response.json()["adminFeedback"] == "Passport expires too soon"
    assert response.json()["labour"]["status"] == "REJECTED"

    promoted = seed.get(LabourAssignment, backup.id)
    assert promoted.is_backup is False
    assert promoted.client_status == SUBMITTED
    role = seed.get(JobRole, placement["role"].id)
    assert role.needs_more_labour is False

    [notice] = [n for n in seed.notifications(placement["agency_user"]) if n.title == "Profile rejected"]
    assert notice.priority == NotificationPriority.HIGH
    assert "Passport expires too soon" in notice.message


def test_admin_rejection_keeps_the_client_decision(client, seed, auth, placement):
    [assignment] = candidates(seed, placement, (ACCEPTED, ACCEPTED, False))

    response = client.put(
        f"/api/admin/assignments/{assignment.id}/status",
        json={"status": "REJECTED", "feedback": "Forged certificate"},
        headers=auth(placement["admin"]),
    )

    assert response.status_code == 200
    assert response.json()["adminStatus"] == "REJECTED"
    assert response.json()["clientStatus"] == "ACCEPTED"
    assert seed.get(LabourAssignment, assignment.id).client_status == ACCEPTED


# ==================== Client selection ====================

def test_client_cannot_decide_before_admin(client, seed, auth, placement):
    [assignment] = candidates(seed, placement, (PENDING, PENDING, False))

    response = client.put(
        f"/api/clients/assignments/{assignment.id}/status",
        json={"status": "ACCEPTED"},
        headers=auth(placement["client_user"]),
    )

    assert response.status_code == 409
    assert response.json()["error"] == "Assignment has not been approved by admin yet"


def test_client_cannot_decide_for_another_company(client, seed, auth, placement):
    [assignment] = candidates(seed, placement, (ACCEPTED, SUBMITTED, False))
    stranger, _ = seed.client("Doha Towers")

    response = client.put(
        f"/api/clients/assignments/{assignment.id}/status",
        json={"status": "ACCEPTED"},
        headers=auth(stranger),
    )

    assert response.status_code == 404


def test_client_filling_the_role_releases_the_rest(client, seed, auth, placement):
    first, second, backup, waiting = candidates(
        seed,
        placement,
        (ACCEPTED, SUBMITTED, False),
        (ACCEPTED, SUBMITTED, False),
        (ACCEPTED, PENDING, True),
        (PENDING, PENDING, False),
    )
    headers = auth(placement["client_user"])

    for assignment in (first, second):
        response = client.put(
            f"/api/clients/assignments/{assignment.id}/status", json={"status": "ACCEPTED"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["clientStatus"] == "ACCEPTED"

    released = seed.get(LabourAssignment, backup.id)
    assert released.client_status == REJECTED
    assert released.client_feedback == "Backup candidate - requirement fulfilled"
    assert released.labour.status == LabourProfileStatus.APPROVED

    unselected = seed.get(LabourAssignment, waiting.id)
    assert unselected.client_status == REJECTED
    assert unselected.client_feedback == "Not selected - requirement fulfilled"

    assert seed.get(Requirement, placement["requirement"].id).status == RequirementStatus.ACCEPTED
    assert seed.get(JobRole, placement["role"].id).admin_status == JobRoleStatus.ACCEPTED


def test_client_rejection_promotes_the_backup(client, seed, auth, placement):
    first, second, backup = candidates(
        seed, placement, (ACCEPTED, SUBMITTED, False), (ACCEPTED, SUBMITTED, False), (ACCEPTED, PENDING, True)
    )

    response = client.put(
        f"/api/clients/assignments/{first.id}/status",
        json={"status": "REJECTED", "feedback": "No Gulf experience"},
        headers=auth(placement["client_user"]),
    )

    assert response.status_code == 200
    assert response.json()["clientStatus"] == "REJECTED"
    assert response.json()["adminStatus"] == "REJECTED"
    assert response.json()["clientFeedback"] == "No Gulf experience"

    promoted = seed.get(LabourAssignment, backup.id)
    assert promoted.is_backup is False
    assert promoted.client_status == SUBMITTED


# ==================== Bulk decisions ====================

def test_admin_bulk_accept_ranks_primaries_and_backups(client, seed, auth, placement):
    first, second, third = candidates(
        seed, placement, (PENDING, PENDING, False), (PENDING, PENDING, False), (PENDING, PENDING, False)
    )

    response = client.put(
        "/api/admin/assignments/bulk-status",
        json={"assignmentIds": [str(a.id) for a in (first, second, third)], "status": "ACCEPTED"},
        headers=auth(placement["admin"]),
    )

    assert response.status_code == 200
    body = response.json()["assignments"]
    assert [(a["id"], a["isBackup"]) for a in body] == [
        (str(first.id), False),
        (str(second.id), False),
        (str(third.id), True),
    ]
    assert seed.get(Requirement, placement["requirement"].id).status == RequirementStatus.CLIENT_REVIEW


def test_bulk_decision_with_an_unknown_id_changes_nothing(client, seed, auth, placement):
    [assignment] = candidates(seed, placement, (PENDING, PENDING, False))

    response = client.put(
        "/api/admin/assignments/bulk-status",
        json={"assignmentIds": [str(assignment.id), "00000000-0000-0000-0000-000000000000"], "status": "ACCEPTED"},
        headers=auth(placement["admin"]),
    )

    assert response.status_code == 404
    assert response.json()["error"] == "Some assignments not found"
    assert seed.get(LabourAssignment, assignment.id).admin_status == PENDING


def test_bulk_decision_is_all_or_nothing(client, seed, auth, placement):
    approved, waiting = candidates(seed, placement, (ACCEPTED, SUBMITTED, False), (PENDING, PENDING, False))

    response = client.put(
        "/api/clients/assignments/bulk-status",
        json={"assignmentIds": [str(approved.id), str(waiting.id)], "status": "ACCEPTED"},
        headers=auth(placement["client_user"]),
    )

    assert response.status_code == 409
    assert response.json()["error"] == "Assignment has not been approved by admin yet"
    assert seed.get(LabourAssignment, approved.id).client_status == SUBMITTED


def test_client_bulk_rejection_needs_feedback_and_promotes_backups(client, seed, auth, placement):
    first, second, backup = candidates(
        seed, placement, (ACCEPTED, SUBMITTED, False), (ACCEPTED, SUBMITTED, False), (ACCEPTED, PENDING, True)
    )
    headers = auth(placement["client_user"])
    payload = {"assignmentIds": [str(first.id)], "status": "REJECTED"}

    missing = client.put("/api/clients/assignments/bulk-status", json=payload, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["error"] == "Feedback is required for rejection"

    response = client.put(
        "/api/clients/assignments/bulk-status", json={**payload, "feedback": "Too young"}, headers=headers
    )

    assert response.status_code == 200
    [rejected] = response.json()["assignments"]
    assert rejected["clientStatus"] == "REJECTED"
    assert seed.get(LabourAssignment, backup.id).client_status == SUBMITTED


def test_bulk_decision_needs_at_least_one_id(client, auth, placement):
    response = client.put(
        "/api/admin/assignments/bulk-status",
        json={"assignmentIds": [], "status": "ACCEPTED"},
        headers=auth(placement["admin"]),
    )

    assert response.status_code == 422


# ==================== Listing and reconciliation ====================

def test_assignment_list_is_scoped_per_agency(client, seed, auth, placement):
    other_user, other = seed.agency("Dhaka Overseas")
    seed.forward(placement["role"], other, quantity=1)
    candidates(seed, placement, (PENDING, PENDING, False), (PENDING, PENDING, False))
    seed.assignment(placement["role"], other, seed.profile(other), admin_status=PENDING, client_status=PENDING)
    url = f"/api/requirements/{placement['role'].id}/assign"

    everyone = client.get(url, headers=auth(placement["admin"]))
    own = client.get(url, headers=auth(other_user))

    assert len(everyone.json()["assignments"]) == 3
    assert [a["agencyId"] for a in own.json()["assignments"]] == [str(other.id)]
    assert client.get(url, headers=auth(placement["client_user"])).status_code == 403


def test_reconciliation_reports_rejections_beyond_the_buffer(client, seed, auth):
    admin = seed.admin()
    _, company = seed.client()
    _, agency = seed.agency()
    requirement, (mason,) = seed.requirement(company, roles=(("Mason", 2),))
    seed.forward(mason, agency, quantity=2)
    profiles = [seed.profile(agency, name=name) for name in ("Ram", "Hari", "Shyam")]
    seed.assignment(mason, agency, profiles[0], age=timedelta(hours=3))
    seed.assignment(
        mason, agency, profiles[1], admin_status=REJECTED, client_status=PENDING,
        admin_feedback="Missing passport copy", age=timedelta(hours=2),
    )
    seed.assignment(mason, agency, profiles[2], admin_status=PENDING, client_status=PENDING, age=timedelta(hours=1))

    response = client.get(f"/api/requirements/{requirement.id}/reconciliation", headers=auth(admin))

    assert response.status_code == 200
    assert response.json()["requirementId"] == str(requirement.id)
    [role] = response.json()["roles"]
    assert role["jobRoleId"] == str(mason.id)
    assert role["requestedQuantity"] == 2
    assert role["forwardedQuantity"] == 2
    assert role["acceptedCount"] == 1
    assert role["adminRejectedCount"] == 1
    assert role["rejectionThreshold"] == 0
    assert role["shortfall"] == 1
    assert role["priority"] is True
    assert role["rejectedProfiles"] == [{
        "labourId": str(profiles[1].id),
        "name": "Hari",
        "rejectedBy": "admin",
        "feedback": "Missing passport copy",
    }]


def test_reconciliation_is_admin_only(client, seed, auth):
    user, company = seed.client()
    requirement, _ = seed.requirement(company)

    response = client.get(f"/api/requirements/{requirement.id}/reconciliation", headers=auth(user))

    assert response.status_code == 403
