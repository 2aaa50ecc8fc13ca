from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: int
    actor: str | None
    action: str
    resource: str
    record_id: str | None
    ip_address: str | None
    details: dict[str, Any] | None
    created_at: datetime

    class Config:
        from_attributes = True
