"""One-time sign-in codes. Only an HMAC of each code is stored."""

import hmac
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from propertyhub.core.config import get_settings
from propertyhub.core.security import generate_login_code, login_code_hash
from propertyhub.models.verification_code import VerificationCode


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def create_verification_code(db: Session, email: str) -> tuple[str, datetime]:
    settings = get_settings()
    email = email.strip().lower()
    code = generate_login_code()
    expires_at = _now() + timedelta(minutes=settings.LOGIN_CODE_TTL_MINUTES)

    # A new code replaces any outstanding one.
    db.query(VerificationCode).filter(
        VerificationCode.email == email,
        VerificationCode.used_at.is_(None),
    ).delete(synchronize_session=False)
    db.add(
        VerificationCode(
            email=email,
            code_hash=login_code_hash(email, code, settings.SECRET_KEY),
            expires_at=expires_at,
        )
    )
    db.commit()
    return code, expires_at


def consume_verification_code(db: Session, email: str, code: str) -> bool:
    settings = get_settings()
    email = email.strip().lower()
    expected = login_code_hash(email, code, settings.SECRET_KEY)

    candidates = (
        db.query(VerificationCode)
        .filter(VerificationCode.email == email, VerificationCode.used_at.is_(None))
        .order_by(VerificationCode.created_at.desc())
        .all()
    )
    now = _now()
    for entry in candidates:
        if _aware(entry.expires_at) < now:
            continue
        if hmac.compare_digest(entry.code_hash, expected):
            entry.used_at = now
            db.commit()
            return True
    return False
