"""
Forwarding plan: which agency receives how much of each job role.

The plan is kept as a flat table of (job_role_id, agency_id, quantity) lines.
The per-role view used for display is derived on demand by ``by_role()``, so
there is only one representation to keep consistent.
"""

import enum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from app.core.exceptions import ValidationError


class ForwardingMode(str, enum.Enum):
    SINGLE = "single"  # one agency for the whole requirement
    SPLIT = "split"  # per-role agency assignments


@dataclass
class ForwardingLine:
    job_role_id: str
    agency_id: str
    quantity: int

    def to_payload(self) -> dict:
        return {
            "jobRoleId": str(self.job_role_id),
            "agencyId": str(self.agency_id),
            "quantity": self.quantity,
        }


def _clamp(quantity, upper: Optional[int] = None) -> int:
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        value = 0
    value = max(0, value)
    if upper is not None:
        value = min(value, upper)
    return value


class ForwardingPlan:
    """Normalized role -> agency quantity table."""

    def __init__(self, lines: Iterable[ForwardingLine] = ()):
        self._lines: List[ForwardingLine] = []
        for line in lines:
            self.add(line.job_role_id, line.agency_id, line.quantity)

    # ==================== Construction ====================

    @classmethod
    def single_agency(
        cls,
        roles: Sequence,
        agency_id,
        overrides: Optional[Dict[str, int]] = None,
    ) -> "ForwardingPlan":
        """Every role to one agency.

        Quantity defaults to the role's requested quantity; an override may
        lower it but never raise it above the request.
        """
        overrides = {str(k): v for k, v in (overrides or {}).items()}
        plan = cls()
        for role in roles:
            requested = int(role.quantity)
            quantity = overrides.get(str(role.id), requested)
            plan.add(role.id, agency_id, _clamp(quantity, upper=requested))
        return plan

    @classmethod
    def from_payload(cls, items: Iterable[dict]) -> "ForwardingPlan":
        """Build from the flat ``[{jobRoleId, agencyId, quantity}]`` wire shape."""
        plan = cls()
        for item in items:
            plan.add(item["jobRoleId"], item["agencyId"], item.get("quantity", 0))
        return plan

    # ==================== Lines ====================

    def _find(self, job_role_id, agency_id) -> Optional[ForwardingLine]:
        role_key, agency_key = str(job_role_id), str(agency_id)
        for line in self._lines:
            if line.job_role_id == role_key and line.agency_id == agency_key:
                return line
        return None

    def add(self, job_role_id, agency_id, quantity=0) -> ForwardingLine:
        if self._find(job_role_id, agency_id) is not None:
            raise ValidationError(
                "Agency is already assigned to this job role",
                details={"jobRoleId": str(job_role_id), "agencyId": str(agency_id)},
            )
        line = ForwardingLine(str(job_role_id), str(agency_id), _clamp(quantity))
        self._lines.append(line)
        return line

    def set_quantity(self, job_role_id, agency_id, quantity) -> ForwardingLine:
        line = self._find(job_role_id, agency_id)
        if line is None:
            raise ValidationError("Agency is not assigned to this job role")
        line.quantity = _clamp(quantity)
        return line

    def remove(self, job_role_id, agency_id) -> None:
        line = self._find(job_role_id, agency_id)
        if line is not None:
            self._lines.remove(line)

    # ==================== Views ====================

    @property
    def lines(self) -> List[ForwardingLine]:
        return list(self._lines)

    def lines_for(self, job_role_id) -> List[ForwardingLine]:
        key = str(job_role_id)
        return [line for line in self._lines if line.job_role_id == key]

    def by_role(self) -> Dict[str, List[ForwardingLine]]:
        view: Dict[str, List[ForwardingLine]] = {}
        for line in self._lines:
            view.setdefault(line.job_role_id, []).append(line)
        return view

    def total_assigned(self, job_role_id) -> int:
        return sum(line.quantity for line in self.lines_for(job_role_id))

    def role_is_assigned(self, job_role_id) -> bool:
        return any(line.quantity > 0 for line in self.lines_for(job_role_id))

    def unassigned_roles(self, roles: Sequence) -> list:
        return [role for role in roles if not self.role_is_assigned(role.id)]

    def all_roles_assigned(self, roles: Sequence) -> bool:
        return not self.unassigned_roles(roles)

    def committed_lines(self) -> List[ForwardingLine]:
        """Lines with a positive quantity; zero lines carry no commitment."""
        return [line for line in self._lines if line.quantity > 0]

    def to_payload(self) -> List[dict]:
        """Flat wire shape of the committed lines."""
        return [line.to_payload() for line in self.committed_lines()]

    def __len__(self) -> int:
        return len(self._lines)


def available_agencies(
    job_role_id,
    agencies: Sequence,
    plan: ForwardingPlan,
    rejected_agency_ids: Iterable = (),
    editing_agency_id=None,
) -> list:
    """Agencies that may still be picked for a role.

    Excludes agencies that rejected this role before and agencies already on
    the role's lines, except the one whose line is being edited.
    """
    rejected = {str(a) for a in rejected_agency_ids}
    taken = {line.agency_id for line in plan.lines_for(job_role_id)}
    taken.discard(str(editing_agency_id))
    return [
        agency
        for agency in agencies
        if str(agency.id) not in rejected and str(agency.id) not in taken
    ]


def validate_plan(
    mode: ForwardingMode,
    plan: ForwardingPlan,
    roles: Sequence,
    agency_id=None,
) -> None:
    """Raise ValidationError when the plan may not be submitted."""
    if mode == ForwardingMode.SINGLE:
        if not agency_id:
            raise ValidationError("Please select an agency")
    elif not plan.all_roles_assigned(roles):
        missing = plan.unassigned_roles(roles)
        titles = ", ".join(role.title for role in missing)
        raise ValidationError(
            f"Please assign quantities for {titles}",
            details={"jobRoleIds": [str(role.id) for role in missing]},
        )

    if not plan.to_payload():
        raise ValidationError("Nothing to forward: every quantity is zero")
