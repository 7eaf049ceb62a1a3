"""
Outgoing mail over SMTP.

``smtplib`` is blocking, so each send runs in a worker thread to keep the
event loop free.  A single ``Mailer`` is shared by the whole process.
"""
import asyncio
import logging
import smtplib
from email.mime.text import MIMEText

from devnews.config import settings

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


PASSWORD_RESET_SUBJECT = "Password reset request"
PASSWORD_RESET_HTML = """
<h1>Password reset request</h1>
<p>You are receiving this email because you (or someone else) asked to reset your password.</p>
<p>Follow the link below to choose a new one. It expires in {ttl} minutes.</p>
<a href="{url}">{url}</a>
<p>If you did not request a reset, you can ignore this email.</p>
"""

PASSWORD_CHANGED_SUBJECT = "Your password has been changed"
PASSWORD_CHANGED_HTML = """
<h1>Password changed</h1>
<p>The password for {email} was just reset. If this was not you, contact an administrator.</p>
"""


class Mailer:
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        sender: str = "",
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def _send_sync(self, to: str, subject: str, html: str) -> None:
        msg = MIMEText(html, "html", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.sender, [to], msg.as_string())

    async def send(self, to: str, subject: str, html: str) -> None:
        """Deliver one HTML message; raises MailDeliveryError on any transport failure."""
        try:
            await asyncio.to_thread(self._send_sync, to, subject, html)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail to %s failed: %s", to, exc)
            raise MailDeliveryError(str(exc)) from exc
        logger.info("Mail sent to %s: %s", to, subject)


mailer = Mailer(
    host=settings.SMTP_HOST,
    port=settings.SMTP_PORT,
    username=settings.SMTP_USER,
    password=settings.SMTP_PASSWORD,
    use_tls=settings.SMTP_USE_TLS,
    sender=settings.MAIL_FROM,
)


def get_mailer() -> Mailer:
    return mailer
