from propertyhub.models.user import User, UserRole
from propertyhub.models.verification_code import VerificationCode
from propertyhub.models.audit import AuditLog

__all__ = [
    "User",
    "UserRole",
    "VerificationCode",
    "AuditLog",
]
