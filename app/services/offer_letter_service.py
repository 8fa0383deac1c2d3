"""Offer-letter prerequisite details for a requirement."""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.models.requirement import OfferLetterDetails, Requirement

logger = structlog.get_logger(__name__)


def _as_number(value):
    """Numeric value of ``value`` or None when it is not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def _text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_details(
    working_hours=None,
    working_days=None,
    leave_salary=None,
    end_of_service=None,
    probation_period=None,
) -> dict:
    """Turn form input into display strings.

    Bare numbers get their unit: "8" -> "8 Hours", 6 -> "6 days",
    leave salary 0 -> "No leave salary provided", 30 -> "30 days per year".
    Free text is kept as entered.
    """
    hours = _as_number(working_hours)
    days = _as_number(working_days)
    leave = _as_number(leave_salary)
    service = _as_number(end_of_service)

    if leave is None:
        leave_text = _text(leave_salary)
    elif leave == 0:
        leave_text = "No leave salary provided"
    else:
        leave_text = f"{leave} days per year"

    return {
        "working_hours": f"{hours} Hours" if hours is not None else _text(working_hours),
        "working_days": f"{days} days" if days is not None else _text(working_days),
        "leave_salary": leave_text,
        "end_of_service": f"{service} days per year" if service is not None else _text(end_of_service),
        "probation_period": _text(probation_period),
    }


class OfferLetterService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, requirement_id) -> OfferLetterDetails:
        result = await self.db.execute(
            select(OfferLetterDetails).where(OfferLetterDetails.requirement_id == requirement_id)
        )
        details = result.scalar_one_or_none()
        if details is None:
            raise NotFoundError("Offer letter details")
        return details

    async def upsert(self, requirement: Requirement, **fields) -> OfferLetterDetails:
        values = normalize_details(**fields)
        if not all(values.values()):
            raise ValidationError("All fields are required")

        details = requirement.offer_letter_details
        if details is None:
            details = OfferLetterDetails(requirement_id=requirement.id, **values)
            requirement.offer_letter_details = details
            self.db.add(details)
        else:
            for name, value in values.items():
                setattr(details, name, value)

        await self.db.flush()
        logger.info("offer_letter_details_saved", requirement_id=str(requirement.id))
        return details
