from types import SimpleNamespace

import pytest

from app.core.exceptions import InvalidTransitionError, ValidationError
from app.models.labour import Stage, StageStatus
from app.models.user import UserRole
from app.services.stage_pipeline import (
    STAGE_ORDER,
    TRANSITIONS,
    StageAction,
    allowed_actions,
    ensure_offer_letter_ready,
    offer_letter_blocked,
    resolve,
    stage_index,
    stage_label,
)

AGENCY = UserRole.RECRUITMENT_AGENCY
CLIENT = UserRole.CLIENT_ADMIN


def test_stage_order_runs_from_offer_letter_to_deployed():
    assert len(STAGE_ORDER) == 11
    assert STAGE_ORDER[0] == Stage.OFFER_LETTER_SIGN
    assert STAGE_ORDER[-1] == Stage.DEPLOYED
    assert stage_label(Stage.QVC_PAYMENT) == "QVC Payment"


def test_advancing_transitions_move_exactly_one_stage():
    for transition in TRANSITIONS.values():
        if transition.is_reset or transition.stays:
            continue
        assert stage_index(transition.to_stage) == stage_index(transition.from_stage) + 1, transition.action


def test_every_stage_before_deployment_can_advance():
    advancing = {t.from_stage for t in TRANSITIONS.values() if not t.is_reset and not t.stays}
    assert advancing == set(STAGE_ORDER[:-1])


def test_resolve_returns_the_transition():
    transition = resolve(Stage.QVC_PAYMENT, StageAction.MARK_QVC_PAID, CLIENT)

    assert transition.to_stage == Stage.CONTRACT_SIGN
    assert transition.history_status == StageStatus.PAID


def test_out_of_order_action_is_refused():
    with pytest.raises(InvalidTransitionError) as excinfo:
        resolve(Stage.OFFER_LETTER_SIGN, StageAction.MARK_VISA_APPLIED, CLIENT)

    assert excinfo.value.status_code == 409
    assert excinfo.value.details == {"current": "OFFER_LETTER_SIGN", "requested": "mark_visa_applied"}


def test_action_by_the_wrong_party_is_refused():
    with pytest.raises(InvalidTransitionError, match="must be performed by RECRUITMENT_AGENCY"):
        resolve(Stage.CONTRACT_SIGN, StageAction.APPROVE_CONTRACT, CLIENT)


def test_deployed_is_terminal():
    assert allowed_actions(Stage.DEPLOYED) == []
    with pytest.raises(InvalidTransitionError, match="already deployed"):
        resolve(Stage.DEPLOYED, StageAction.CONFIRM_ARRIVAL, CLIENT)


def test_failure_paths_leave_the_pipeline():
    for action in (
        StageAction.REFUSE_CONTRACT,
        StageAction.MARK_MEDICAL_UNFIT,
        StageAction.MARK_FINGERPRINT_FAIL,
        StageAction.CANCEL_TRAVEL,
    ):
        transition = next(t for t in TRANSITIONS.values() if t.action == action)
        assert transition.is_reset
        assert transition.actor == AGENCY


def test_travel_confirmation_outcomes():
    assert allowed_actions(Stage.TRAVEL_CONFIRMATION, AGENCY) == [
        StageAction.CONFIRM_TRAVEL,
        StageAction.RESCHEDULE_TRAVEL,
        StageAction.CANCEL_TRAVEL,
    ]
    assert allowed_actions(Stage.TRAVEL_CONFIRMATION, CLIENT) == []

    reschedule = resolve(Stage.TRAVEL_CONFIRMATION, StageAction.RESCHEDULE_TRAVEL, AGENCY)
    assert reschedule.stays


def test_signed_offer_letter_upload_keeps_the_stage_open():
    upload = resolve(Stage.OFFER_LETTER_SIGN, StageAction.UPLOAD_SIGNED_OFFER_LETTER, AGENCY)

    assert upload.stays and upload.keeps_row_open
    assert upload.history_status == StageStatus.SIGNED
    assert allowed_actions(Stage.OFFER_LETTER_SIGN, CLIENT) == [StageAction.VERIFY_OFFER_LETTER]


def test_offer_letter_gate():
    upload = resolve(Stage.OFFER_LETTER_SIGN, StageAction.UPLOAD_SIGNED_OFFER_LETTER, AGENCY)
    visa = resolve(Stage.VISA_APPLYING, StageAction.MARK_VISA_APPLIED, CLIENT)

    assert offer_letter_blocked(None)
    assert offer_letter_blocked(SimpleNamespace(is_complete=False))
    assert not offer_letter_blocked(SimpleNamespace(is_complete=True))

    with pytest.raises(ValidationError, match="Offer letter details not filled by client"):
        ensure_offer_letter_ready(upload, None)
    ensure_offer_letter_ready(upload, SimpleNamespace(is_complete=True))
    ensure_offer_letter_ready(visa, None)  # later stages are not gated
