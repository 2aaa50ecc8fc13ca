import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt

from propertyhub.core.config import get_settings

LOGIN_CODE_DIGITS = 6


def create_session_token(user_id: int, email: str, role: str, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.SESSION_MAX_AGE_DAYS))
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "typ": "session",
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": now,
        "nbf": now,
        "exp": expire,
        "jti": secrets.token_urlsafe(24),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_session_token(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        issuer=settings.JWT_ISSUER,
    )


def generate_login_code() -> str:
    # 100000..999999, never a leading zero.
    return str(10 ** (LOGIN_CODE_DIGITS - 1) + secrets.randbelow(9 * 10 ** (LOGIN_CODE_DIGITS - 1)))


def login_code_hash(email: str, code: str, secret: str) -> str:
    message = f"{email.strip().lower()}:{code.strip()}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
