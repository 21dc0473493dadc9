"""Outbound e-mail over SMTP (confirmation links)."""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import smtplib
import ssl

from .config import Settings, get_settings
from .logging import get_logger

log = get_logger(__name__)


def smtp_configured(settings: Settings) -> bool:
    return bool(settings.smtp_host and settings.smtp_user and settings.smtp_password and settings.smtp_from)


def build_message(settings: Settings, subject: str, to_email: str, html_body: str, text_body: str | None = None) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.smtp_from
    message["To"] = to_email
    message.attach(MIMEText(text_body or html_body, "plain", "utf-8"))
    message.attach(MIMEText(html_body, "html", "utf-8"))
    return message


def _deliver(settings: Settings, to_email: str, message: MIMEMultipart) -> None:
    port = settings.smtp_port or 465
    context = ssl.create_default_context()
    # 465 is implicit TLS; any other port upgrades with STARTTLS
    if port == 465:
        client = smtplib.SMTP_SSL(settings.smtp_host, port, context=context, timeout=15)
    else:
        client = smtplib.SMTP(settings.smtp_host, port, timeout=15)
    with client as server:
        if port != 465:
            server.ehlo()
            server.starttls(context=context)
        server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(settings.smtp_from, [to_email], message.as_string())


def send_email(subject: str, to_email: str, html_body: str, text_body: str | None = None) -> bool:
    """Returns False without raising when SMTP is not configured or delivery fails."""
    settings = get_settings()
    if not smtp_configured(settings):
        log.info("email.skipped", reason="smtp_not_configured", to=to_email)
        return False
    try:
        _deliver(settings, to_email, build_message(settings, subject, to_email, html_body, text_body))
    except (smtplib.SMTPException, OSError) as exc:
        log.warning("email.failed", to=to_email, error=str(exc))
        return False
    log.info("email.sent", to=to_email, subject=subject)
    return True
