"""Audit trail for workflow mutations."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import AuditLog


def _jsonable(data: Optional[dict]) -> dict:
    """Enum members and ids stored as plain strings."""
    if not data:
        return {}
    clean = {}
    for key, value in data.items():
        if hasattr(value, "value"):
            value = value.value
        elif value is not None and not isinstance(value, (str, int, float, bool, list, dict)):
            value = str(value)
        clean[key] = value
    return clean


async def record_audit(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id,
    performed_by_id=None,
    description: Optional[str] = None,
    old_data: Optional[dict] = None,
    new_data: Optional[dict] = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        performed_by_id=performed_by_id,
        description=description,
        old_data=_jsonable(old_data),
        new_data=_jsonable(new_data),
    )
    db.add(entry)
    return entry
