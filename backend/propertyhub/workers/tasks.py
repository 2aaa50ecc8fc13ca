import logging

from propertyhub.core.config import get_settings
from propertyhub.services.email import build_login_code_email, send_email, smtp_configured
from propertyhub.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task
def send_login_code_email(email: str, code: str) -> dict:
    settings = get_settings()
    if not smtp_configured():
        logger.warning("SMTP not configured; login code for %s not sent", email)
        return {"status": "smtp_not_configured", "email": email}

    message = build_login_code_email(
        code=code,
        minutes=settings.LOGIN_CODE_TTL_MINUTES,
        brand=settings.LOGIN_CODE_BRAND,
        support_email=settings.SUPPORT_EMAIL,
    )
    send_email(email, message["subject"], message["text"], html=message["html"])
    logger.info("Login code sent to %s", email)
    return {"status": "sent", "email": email}
