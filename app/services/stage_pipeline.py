"""
Onboarding stage machine for labour assignments.

Every move is an entry in ``TRANSITIONS``: ``(from_stage, action) -> Transition``.
Anything not in the table is refused with ``InvalidTransitionError``, so a
stage can only move forward in ``STAGE_ORDER`` (or leave the pipeline through
a failure path). DEPLOYED has no outgoing actions.
"""

import enum
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from app.core.exceptions import InvalidTransitionError, ValidationError
from app.models.labour import Stage, StageStatus
from app.models.user import UserRole
from app.utils.constants import OFFER_LETTER_BLOCKED_MESSAGE, STAGE_LABELS

STAGE_ORDER: List[Stage] = list(Stage)


class StageAction(str, enum.Enum):
    UPLOAD_SIGNED_OFFER_LETTER = "upload_signed_offer_letter"
    VERIFY_OFFER_LETTER = "verify_offer_letter"
    MARK_VISA_APPLIED = "mark_visa_applied"
    MARK_QVC_PAID = "mark_qvc_paid"
    APPROVE_CONTRACT = "approve_contract"
    REFUSE_CONTRACT = "refuse_contract"
    MARK_MEDICAL_FIT = "mark_medical_fit"
    MARK_MEDICAL_UNFIT = "mark_medical_unfit"
    MARK_FINGERPRINT_PASS = "mark_fingerprint_pass"
    MARK_FINGERPRINT_FAIL = "mark_fingerprint_fail"
    UPLOAD_VISA = "upload_visa"
    UPLOAD_TRAVEL_DOCUMENTS = "upload_travel_documents"
    CONFIRM_TRAVEL = "confirm_travel"
    RESCHEDULE_TRAVEL = "reschedule_travel"
    CANCEL_TRAVEL = "cancel_travel"
    CONFIRM_ARRIVAL = "confirm_arrival"


@dataclass(frozen=True)
class Transition:
    action: StageAction
    from_stage: Stage
    to_stage: Optional[Stage]  # None: assignment leaves the pipeline (failure path)
    actor: UserRole
    history_status: StageStatus  # how the current stage's history row is closed
    requires_offer_letter: bool = False
    keeps_row_open: bool = False  # row takes history_status but the stage stays current

    @property
    def is_reset(self) -> bool:
        return self.to_stage is None

    @property
    def stays(self) -> bool:
        return self.to_stage == self.from_stage


_CLIENT = UserRole.CLIENT_ADMIN
_AGENCY = UserRole.RECRUITMENT_AGENCY

_TABLE = [
    Transition(StageAction.UPLOAD_SIGNED_OFFER_LETTER, Stage.OFFER_LETTER_SIGN, Stage.OFFER_LETTER_SIGN,
               _AGENCY, StageStatus.SIGNED, requires_offer_letter=True, keeps_row_open=True),
    Transition(StageAction.VERIFY_OFFER_LETTER, Stage.OFFER_LETTER_SIGN, Stage.VISA_APPLYING,
               _CLIENT, StageStatus.COMPLETED, requires_offer_letter=True),
    Transition(StageAction.MARK_VISA_APPLIED, Stage.VISA_APPLYING, Stage.QVC_PAYMENT,
               _CLIENT, StageStatus.COMPLETED),
    Transition(StageAction.MARK_QVC_PAID, Stage.QVC_PAYMENT, Stage.CONTRACT_SIGN,
               _CLIENT, StageStatus.PAID),
    Transition(StageAction.APPROVE_CONTRACT, Stage.CONTRACT_SIGN, Stage.MEDICAL_STATUS,
               _AGENCY, StageStatus.COMPLETED),
    Transition(StageAction.REFUSE_CONTRACT, Stage.CONTRACT_SIGN, None,
               _AGENCY, StageStatus.REFUSED),
    Transition(StageAction.MARK_MEDICAL_FIT, Stage.MEDICAL_STATUS, Stage.FINGERPRINT,
               _AGENCY, StageStatus.COMPLETED),
    Transition(StageAction.MARK_MEDICAL_UNFIT, Stage.MEDICAL_STATUS, None,
               _AGENCY, StageStatus.FAILED),
    Transition(StageAction.MARK_FINGERPRINT_PASS, Stage.FINGERPRINT, Stage.VISA_PRINTING,
               _AGENCY, StageStatus.COMPLETED),
    Transition(StageAction.MARK_FINGERPRINT_FAIL, Stage.FINGERPRINT, None,
               _AGENCY, StageStatus.FAILED),
    Transition(StageAction.UPLOAD_VISA, Stage.VISA_PRINTING, Stage.READY_TO_TRAVEL,
               _CLIENT, StageStatus.COMPLETED),
    Transition(StageAction.UPLOAD_TRAVEL_DOCUMENTS, Stage.READY_TO_TRAVEL, Stage.TRAVEL_CONFIRMATION,
               _AGENCY, StageStatus.COMPLETED),
    Transition(StageAction.CONFIRM_TRAVEL, Stage.TRAVEL_CONFIRMATION, Stage.ARRIVAL_CONFIRMATION,
               _AGENCY, StageStatus.TRAVELED),
    Transition(StageAction.RESCHEDULE_TRAVEL, Stage.TRAVEL_CONFIRMATION, Stage.TRAVEL_CONFIRMATION,
               _AGENCY, StageStatus.RESCHEDULED),
    Transition(StageAction.CANCEL_TRAVEL, Stage.TRAVEL_CONFIRMATION, None,
               _AGENCY, StageStatus.CANCELED),
    Transition(StageAction.CONFIRM_ARRIVAL, Stage.ARRIVAL_CONFIRMATION, Stage.DEPLOYED,
               _CLIENT, StageStatus.COMPLETED),
]

TRANSITIONS: Dict[Tuple[Stage, StageAction], Transition] = {
    (t.from_stage, t.action): t for t in _TABLE
}

# Travel confirmation outcome -> action
TRAVEL_OUTCOME_ACTIONS = {
    "TRAVELED": StageAction.CONFIRM_TRAVEL,
    "RESCHEDULED": StageAction.RESCHEDULE_TRAVEL,
    "CANCELED": StageAction.CANCEL_TRAVEL,
}


def stage_label(stage: Stage) -> str:
    return STAGE_LABELS.get(stage.value, stage.value)


def stage_index(stage: Stage) -> int:
    return STAGE_ORDER.index(stage)


def is_terminal(stage: Stage) -> bool:
    return stage == Stage.DEPLOYED


def resolve(stage: Stage, action: StageAction, actor: Optional[UserRole] = None) -> Transition:
    """Transition for ``action`` at ``stage`` or raise InvalidTransitionError."""
    if is_terminal(stage):
        raise InvalidTransitionError(
            "Labour is already deployed",
            current=stage,
            requested=action,
        )

    transition = TRANSITIONS.get((stage, action))
    if transition is None:
        raise InvalidTransitionError(
            f"Action '{action.value}' is not allowed at stage {stage.value}",
            current=stage,
            requested=action,
        )

    if actor is not None and transition.actor != actor:
        raise InvalidTransitionError(
            f"Action '{action.value}' must be performed by {transition.actor.value}",
            current=stage,
            requested=action,
        )

    return transition


def allowed_actions(stage: Stage, actor: Optional[UserRole] = None) -> List[StageAction]:
    """Actions available at ``stage``, optionally limited to one actor."""
    return [
        t.action
        for (from_stage, _), t in TRANSITIONS.items()
        if from_stage == stage and (actor is None or t.actor == actor)
    ]


def offer_letter_blocked(details) -> bool:
    """True when the requirement's offer-letter details are missing or incomplete."""
    return details is None or not details.is_complete


def ensure_offer_letter_ready(transition: Transition, details) -> None:
    if transition.requires_offer_letter and offer_letter_blocked(details):
        raise ValidationError(OFFER_LETTER_BLOCKED_MESSAGE)
