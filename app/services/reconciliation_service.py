"""
Reconciliation: how many more labourers a job role still needs.

Pure read-side derivation over a role and its assignments. Nothing here
writes to the database; persisted ``needs_more_labour`` and
``forwarded_quantity`` are maintained by the forwarding and assignment
services.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Sequence

from app.models.labour import DecisionStatus


@dataclass
class RejectedProfile:
    labour_id: str
    name: str
    rejected_by: str  # admin | client | both
    feedback: Optional[str] = None


@dataclass
class RoleReconciliation:
    job_role_id: str
    title: str
    requested_quantity: int
    forwarded_quantity: int
    admin_rejected_count: int
    client_rejected_count: int
    accepted_count: int
    rejection_threshold: int
    total_needed: int
    shortfall: int
    needs_more_labour: bool
    priority: bool
    rejected_profiles: List[RejectedProfile] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _rejected_by(assignment) -> Optional[str]:
    admin = assignment.admin_status == DecisionStatus.REJECTED
    client = assignment.client_status == DecisionStatus.REJECTED
    if admin and client:
        return "both"
    if admin:
        return "admin"
    if client:
        return "client"
    return None


def reconcile_role(role, assignments: Sequence) -> RoleReconciliation:
    """Derive the sourcing position of one job role.

    - accepted_count counts assignments accepted by both admin and client
    - rejection_threshold is the over-forwarding buffer
      (forwarded - requested); admin rejections up to it are tolerated
    - priority is raised when admin rejections exceed the buffer or the
      role is already flagged as needing more labour
    """
    requested = role.quantity or 0
    forwarded = role.forwarded_quantity or 0

    admin_rejected = 0
    client_rejected = 0
    accepted = 0
    rejected_profiles: List[RejectedProfile] = []

    for assignment in assignments:
        if assignment.admin_status == DecisionStatus.REJECTED:
            admin_rejected += 1
        if assignment.client_status == DecisionStatus.REJECTED:
            client_rejected += 1
        if (
            assignment.admin_status == DecisionStatus.ACCEPTED
            and assignment.client_status == DecisionStatus.ACCEPTED
        ):
            accepted += 1

        side = _rejected_by(assignment)
        if side is not None:
            labour = getattr(assignment, "labour", None)
            rejected_profiles.append(
                RejectedProfile(
                    labour_id=str(assignment.labour_id),
                    name=labour.name if labour is not None else "",
                    rejected_by=side,
                    # Client feedback is the later verdict when both rejected
                    feedback=assignment.client_feedback or assignment.admin_feedback,
                )
            )

    threshold = forwarded - requested
    needs_more = bool(role.needs_more_labour)
    priority = admin_rejected > threshold or needs_more

    return RoleReconciliation(
        job_role_id=str(role.id),
        title=role.title,
        requested_quantity=requested,
        forwarded_quantity=forwarded,
        admin_rejected_count=admin_rejected,
        client_rejected_count=client_rejected,
        accepted_count=accepted,
        rejection_threshold=threshold,
        total_needed=forwarded - accepted,
        shortfall=max(requested - accepted, 0),
        needs_more_labour=needs_more,
        priority=priority,
        rejected_profiles=rejected_profiles if priority else [],
    )


def reconcile_requirement(requirement) -> List[RoleReconciliation]:
    """Reconciliation for every role of a requirement, in display order."""
    return [reconcile_role(role, role.assignments) for role in requirement.job_roles]
