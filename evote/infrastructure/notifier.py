import logging
import smtplib
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage
from typing import Optional

from evote.config import MAIL_FROM, MAIL_TIMEOUT_SECONDS, SMTP_HOST, SMTP_PASSWORD, SMTP_PORT, SMTP_USER

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Best-effort mail delivery. ``send`` reports failure as ``False`` and never raises."""

    def __init__(self, host: str = SMTP_HOST, port: int = SMTP_PORT, user: str = SMTP_USER,
                 password: str = SMTP_PASSWORD, sender: str = MAIL_FROM,
                 timeout: float = MAIL_TIMEOUT_SECONDS, max_workers: int = 2):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender
        self.timeout = timeout
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    def send(self, address: str, subject: str, body: str) -> bool:
        if not address:
            logger.warning("No address to send %r to", subject)
            return False
        if not self.host:
            logger.info("SMTP not configured, email to %s not sent: %s", address, subject)
            return False

        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = address
        msg["Subject"] = subject
        msg.set_content(body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.user:
                    smtp.starttls()
                    smtp.login(self.user, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Email to %s failed: %r", address, e)
            return False

        logger.info("Email sent to %s", address)
        return True

    def dispatch(self, address: str, subject: str, body: str) -> Future:
        """Queues ``send`` on the mail pool and returns without waiting."""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="evote-mail")
            return self._executor.submit(self.send, address, subject, body)

    def shutdown(self):
        """Stops the mail pool; the next ``dispatch`` starts a fresh one."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)


email_notifier = EmailNotifier()
