from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from sqlalchemy.orm import Session

from propertyhub.core.config import get_settings
from propertyhub.core.database import get_db
from propertyhub.core.security import decode_session_token
from propertyhub.models.user import User, UserRole
from propertyhub.services.translator import TranslatorClient


def _session_token(request: Request) -> str | None:
    settings = get_settings()
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def get_session_user(request: Request, db: Session = Depends(get_db)) -> User:
    not_signed_in = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not signed in",
    )
    token = _session_token(request)
    if not token:
        raise not_signed_in
    try:
        payload = decode_session_token(token)
    except JWTError:
        raise not_signed_in
    if payload.get("typ") != "session" or not payload.get("sub"):
        raise not_signed_in

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not user:
        raise not_signed_in
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")
    return user


def require_roles(*roles: UserRole):
    def role_dependency(current_user: User = Depends(get_session_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Admin role required")
        return current_user

    return role_dependency


require_admin = require_roles(UserRole.admin)


def get_translator() -> TranslatorClient:
    return TranslatorClient.from_settings(get_settings())


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
