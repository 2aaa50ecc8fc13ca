from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from propertyhub.core.database import get_db
from propertyhub.core.deps import require_admin
from propertyhub.models.audit import AuditLog
from propertyhub.models.user import User
from propertyhub.schemas.audit import AuditLogResponse

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditLogResponse])
def list_audit_logs(
    record_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    query = db.query(AuditLog)
    if record_id:
        query = query.filter(AuditLog.record_id == record_id)
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
