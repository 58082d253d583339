from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from functools import lru_cache
import logging
import smtplib

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass(slots=True)
class BulkSendResult:
    successful: int
    failed: int
    results: list[SendResult] = field(default_factory=list)


class Mailer:
    """SMTP delivery. Failures come back as ``SendResult`` values, never exceptions."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        secure: bool,
        user: str | None,
        password: str | None,
        from_email: str | None,
        from_name: str,
        admin_email: str | None,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self.secure = secure
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.admin_email = admin_email
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> Mailer:
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            secure=settings.smtp_secure,
            user=settings.smtp_user,
            password=settings.smtp_password,
            from_email=settings.smtp_from_email or settings.smtp_user,
            from_name=settings.smtp_from_name,
            admin_email=settings.admin_email,
            timeout_seconds=settings.smtp_timeout_seconds,
        )

    async def verify(self) -> bool:
        try:
            await asyncio.to_thread(self._verify_sync)
        except (smtplib.SMTPException, OSError):
            logger.exception("email service verification failed host=%s port=%s", self.host, self.port)
            return False
        logger.info("email service ready host=%s port=%s", self.host, self.port)
        return True

    async def send(self, *, to: str, subject: str, html: str) -> SendResult:
        message = self._build_message(to=to, subject=subject, html=html)
        try:
            await asyncio.to_thread(self._deliver_sync, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("email send failed to=%s subject=%s", to, subject)
            return SendResult(success=False, error=str(exc) or exc.__class__.__name__)
        message_id = message["Message-ID"]
        logger.info("email sent to=%s message_id=%s", to, message_id)
        return SendResult(success=True, message_id=message_id)

    async def send_bulk(self, *, recipients: list[str], subject: str, html: str) -> BulkSendResult:
        results = await asyncio.gather(*(self.send(to=to, subject=subject, html=html) for to in recipients))
        successful = sum(1 for result in results if result.success)
        failed = len(results) - successful
        logger.info("bulk email complete sent=%s failed=%s", successful, failed)
        return BulkSendResult(successful=successful, failed=failed, results=list(results))

    async def send_admin_alert(self, *, subject: str, html: str) -> SendResult:
        if not self.admin_email:
            logger.warning("admin email not configured; alert not sent subject=%s", subject)
            return SendResult(success=False, error="Admin email not set")
        return await self.send(to=self.admin_email, subject=subject, html=html)

    def _build_message(self, *, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_email or ""))
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=(self.from_email or "signalx.local").rpartition("@")[2])
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(html, subtype="html")
        return message

    def _connect(self) -> smtplib.SMTP:
        if self.secure:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds)
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls()
        return smtp

    def _verify_sync(self) -> None:
        with self._connect() as smtp:
            if self.user and self.password:
                smtp.login(self.user, self.password)
            smtp.noop()

    def _deliver_sync(self, message: EmailMessage) -> None:
        with self._connect() as smtp:
            if self.user and self.password:
                smtp.login(self.user, self.password)
            smtp.send_message(message)


@lru_cache
def get_mailer() -> Mailer:
    return Mailer.from_settings(get_settings())
