import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from propertyhub.core.config import get_settings
from propertyhub.core.database import get_db
from propertyhub.core.deps import client_ip, get_session_user
from propertyhub.core.rate_limit import limiter
from propertyhub.core.security import create_session_token
from propertyhub.models.user import User
from propertyhub.schemas.auth import SendCodeRequest, SessionUser, VerifyCodeRequest
from propertyhub.services.audit import audit_event
from propertyhub.services.verification import consume_verification_code, create_verification_code
from propertyhub.workers.tasks import send_login_code_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

NOT_REGISTERED = {
    "success": False,
    "message": "This email address is not registered",
    "code": "NOT_REGISTERED",
}


def _registered_user(db: Session, email: str) -> User:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=404, detail=NOT_REGISTERED)
    return user


@router.post("/send-code")
@limiter.limit("5/minute")
def send_code(request: Request, payload: SendCodeRequest, db: Session = Depends(get_db)):
    user = _registered_user(db, payload.email)
    code, expires_at = create_verification_code(db, user.email)
    send_login_code_email.delay(user.email, code)
    audit_event(db, "login_code_sent", "auth", actor=user.email, ip_address=client_ip(request))
    return {"success": True, "message": "Verification code sent successfully", "expires": expires_at}


@router.post("/verify-code")
@limiter.limit("10/minute")
def verify_code(request: Request, response: Response, payload: VerifyCodeRequest, db: Session = Depends(get_db)):
    settings = get_settings()
    user = _registered_user(db, payload.email)

    if not consume_verification_code(db, user.email, payload.code):
        audit_event(db, "login_failed", "auth", actor=user.email, ip_address=client_ip(request))
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")

    token = create_session_token(user.id, user.email, user.role.value)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_MAX_AGE_DAYS * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )
    audit_event(db, "login_success", "auth", actor=user.email, ip_address=client_ip(request))
    logger.info("User %s signed in", user.email)
    return {
        "success": True,
        "message": "Verification successful",
        "user": SessionUser.model_validate(user),
    }


@router.get("/session", response_model=SessionUser)
def session(current_user: User = Depends(get_session_user)):
    return current_user


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    settings = get_settings()
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    audit_event(db, "logout", "auth", ip_address=client_ip(request))
    return {"success": True}
