# app/utils/mailer.py
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


SUBJECTS = {
    "tr": "Satın alma onayı: {course}",
    "en": "Purchase confirmation: {course}",
}

BODIES = {
    "tr": (
        "Merhaba {name},\n\n"
        "{course} kaydınız tamamlandı.\n"
        "Sipariş numarası: {order_id}\n"
        "Ödenen tutar: {amount} TL\n\n"
        "Kursa hemen başlayabilirsiniz: {link}\n"
    ),
    "en": (
        "Hello {name},\n\n"
        "Your enrollment in {course} is complete.\n"
        "Order number: {order_id}\n"
        "Amount paid: {amount} TRY\n\n"
        "You can start the course right away: {link}\n"
    ),
}


class Mailer:
    """Plain SMTP delivery. Does nothing but log when mail is disabled."""

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        encryption: str = "tls",
        timeout: int = 10,
        from_address: str = "no-reply@example.com",
        from_name: str = "",
        enabled: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.encryption = (encryption or "").lower()
        self.timeout = timeout
        self.from_address = from_address
        self.from_name = from_name
        self.enabled = enabled

    @classmethod
    def from_settings(cls) -> "Mailer":
        return cls(
            host=settings.mail_host,
            port=settings.mail_port,
            username=settings.mail_username,
            password=settings.mail_password,
            encryption=settings.mail_encryption,
            timeout=settings.mail_timeout,
            from_address=settings.mail_from_address,
            from_name=settings.mail_from_name,
            enabled=settings.mail_enabled,
        )

    def send(self, to: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.info(f"Mail disabled, not sending '{subject}' to {to}")
            return False

        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_address))
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        if self.encryption == "ssl":
            client = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)

        with client as smtp:
            if self.encryption == "tls":
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

        logger.info(f"Mail '{subject}' sent to {to}")
        return True

    def send_purchase_confirmation(self, order, course=None) -> bool:
        locale = order.locale if order.locale in BODIES else "en"
        slug = course.slug if course is not None else ""
        link = f"{settings.frontend_url}/{locale}/watch/course/{slug}".rstrip("/")
        subject = SUBJECTS[locale].format(course=order.course_name)
        body = BODIES[locale].format(
            name=order.buyer_name,
            course=order.course_name,
            order_id=order.order_id,
            amount=f"{order.amount:.2f}",
            link=link,
        )
        return self.send(order.buyer_email, subject, body)
