"""
SMTP submission channel used by the load workers.
"""

import logging
import smtplib
import time
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Optional

from .errors import SubmissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Envelope:
    """A single message handed to the server"""
    sender: str
    recipient: str
    subject: str
    body: str

    def as_mime(self) -> MIMEText:
        msg = MIMEText(self.body)
        msg['Subject'] = self.subject
        msg['From'] = self.sender
        msg['To'] = self.recipient
        return msg


class MessageSubmitter:
    """Sends messages over SMTP, one session per message.

    The submitter keeps no per-call state, so one instance can be shared by
    every worker thread.
    """

    def __init__(self, host: str = 'localhost', port: int = 25, timeout: float = 30.0,
                 retries: int = 0, retry_delay: float = 0.5,
                 username: Optional[str] = None, password: Optional[str] = None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay
        self.username = username
        self.password = password

    def submit(self, sender: str, recipient: str, subject: str, body: str):
        """Send one message, raising SubmissionError on any failure"""
        self.submit_envelope(Envelope(sender, recipient, subject, body))

    def submit_envelope(self, envelope: Envelope):
        msg = envelope.as_mime()
        server = self._connect()
        try:
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(envelope.sender, [envelope.recipient], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            # The server may already hold the message, so this is never retried
            raise SubmissionError(f"Failed to submit message to {envelope.recipient}: {e}", e) from e
        finally:
            self._close(server)
        logger.debug(f"Submitted message {envelope.sender} -> {envelope.recipient}")

    def _connect(self) -> smtplib.SMTP:
        """Open an SMTP session, retrying only when no session was established"""
        attempt = 0
        while True:
            try:
                return smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            except (smtplib.SMTPConnectError, OSError) as e:
                if attempt >= self.retries:
                    raise SubmissionError(
                        f"Could not connect to SMTP server {self.host}:{self.port}: {e}", e) from e
                attempt += 1
                logger.warning(f"SMTP connect to {self.host}:{self.port} failed ({e}), "
                               f"retry {attempt}/{self.retries}")
                time.sleep(self.retry_delay)

    @staticmethod
    def _close(server: smtplib.SMTP):
        try:
            server.quit()
        except (smtplib.SMTPException, OSError):
            server.close()
