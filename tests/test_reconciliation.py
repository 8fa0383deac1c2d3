from types import SimpleNamespace

from app.models.labour import DecisionStatus
from app.services.reconciliation_service import reconcile_role

A = DecisionStatus.ACCEPTED
R = DecisionStatus.REJECTED
P = DecisionStatus.PENDING


def _assignment(admin, client, name="Worker", admin_feedback=None, client_feedback=None):
    return SimpleNamespace(
        labour_id=f"labour-{name}",
        labour=SimpleNamespace(name=name),
        admin_status=admin,
        client_status=client,
        admin_feedback=admin_feedback,
        client_feedback=client_feedback,
    )


def _role(quantity=2, forwarded=3, needs_more=False):
    return SimpleNamespace(
        id="role-1",
        title="Mason",
        quantity=quantity,
        forwarded_quantity=forwarded,
        needs_more_labour=needs_more,
    )


def test_rejections_within_the_buffer_are_not_a_priority():
    result = reconcile_role(_role(), [
        _assignment(R, P, "Ram", admin_feedback="Too young"),
        _assignment(A, A, "Hari"),
        _assignment(A, P, "Shyam"),
    ])

    assert result.rejection_threshold == 1
    assert result.admin_rejected_count == 1
    assert result.accepted_count == 1
    assert result.total_needed == 2
    assert result.shortfall == 1
    assert result.priority is False
    assert result.rejected_profiles == []


def test_rejections_beyond_the_buffer_raise_priority():
    result = reconcile_role(_role(), [
        _assignment(R, P, "Ram", admin_feedback="Too young"),
        _assignment(R, R, "Hari", admin_feedback="Docs", client_feedback="No experience"),
        _assignment(A, A, "Shyam"),
    ])

    assert result.admin_rejected_count == 2
    assert result.client_rejected_count == 1
    assert result.priority is True
    assert [(p.name, p.rejected_by, p.feedback) for p in result.rejected_profiles] == [
        ("Ram", "admin", "Too young"),
        ("Hari", "both", "No experience"),
    ]


def test_needs_more_labour_flag_forces_priority():
    result = reconcile_role(_role(forwarded=2, needs_more=True), [
        _assignment(P, R, "Ram", client_feedback="Not suitable"),
    ])

    assert result.priority is True
    assert result.needs_more_labour is True
    assert result.rejected_profiles[0].rejected_by == "client"
    assert result.to_dict()["shortfall"] == 2


def test_fully_accepted_role_has_no_shortfall():
    result = reconcile_role(_role(forwarded=2), [_assignment(A, A), _assignment(A, A)])

    assert result.shortfall == 0
    assert result.total_needed == 0
    assert result.priority is False
