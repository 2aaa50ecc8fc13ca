import smtplib
from datetime import datetime
from email.message import EmailMessage
from html import escape

from propertyhub.core.config import get_settings


def smtp_configured() -> bool:
    return bool(get_settings().SMTP_HOST)


def send_email(to_email: str, subject: str, body: str, html: str | None = None) -> None:
    settings = get_settings()
    if not settings.SMTP_HOST:
        raise RuntimeError("SMTP is not configured")

    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM_EMAIL
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype="html")

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=20) as server:
        if settings.SMTP_USE_TLS:
            server.starttls()
        if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)


def build_login_code_email(code: str, minutes: int, brand: str, support_email: str, year: int | None = None) -> dict:
    year = year or datetime.now().year
    subject = f"{brand} sign-in code"
    text = (
        f"Your sign-in code: {code}. The code is valid for {minutes} minutes.\n"
        "If you did not request this code, you can ignore this email.\n\n"
        f"{brand} - {year}"
    )
    html = f"""<table role="presentation" width="100%" style="background:#f4f5f7;padding:24px;">
  <tr><td align="center">
    <table role="presentation" width="100%" style="max-width:560px;background:#ffffff;border-radius:14px;">
      <tr><td style="background:#4b0082;padding:24px;color:#ffffff;font:700 20px Arial,sans-serif;" align="center">
        {escape(brand)} sign-in code
      </td></tr>
      <tr><td style="padding:24px;font:16px Arial,sans-serif;color:#1f2937;">
        <p>Use the code below to sign in:</p>
        <p style="font:700 28px monospace;letter-spacing:0.35em;color:#4b0082;text-align:center;">{escape(code)}</p>
        <p>The code is valid for <strong>{minutes} minutes</strong>.</p>
        <p style="color:#6b7280;font-size:14px;">If you did not request this code, you can ignore this email.</p>
      </td></tr>
      <tr><td style="padding:16px;font:12px Arial,sans-serif;color:#6b7280;" align="center">
        Questions? <a href="mailto:{escape(support_email)}">{escape(support_email)}</a><br/>
        &copy; {year} {escape(brand)}
      </td></tr>
    </table>
  </td></tr>
</table>"""
    return {"subject": subject, "text": text, "html": html}
