from typing import Any

from sqlalchemy.orm import Session

from propertyhub.models.audit import AuditLog


def audit_event(
    db: Session,
    action: str,
    resource: str,
    actor: str | None = None,
    record_id: str | None = None,
    ip_address: str | None = None,
    details: dict[str, Any] | None = None,
    commit: bool = True,
) -> AuditLog:
    entry = AuditLog(
        actor=actor,
        action=action,
        resource=resource,
        record_id=str(record_id) if record_id is not None else None,
        ip_address=ip_address,
        details=details,
    )
    db.add(entry)
    if commit:
        db.commit()
    return entry
