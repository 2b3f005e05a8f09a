"""
Per-run environment setup: spam classifier integration, classifier
reachability and the dedicated mailbox account.
"""

import logging
import socket
from typing import Optional

import requests

from .config import HarnessConfig, SpamClassifierSettings
from .errors import HarnessError, PreconditionError

logger = logging.getLogger(__name__)


class ServerAdmin:
    """Client for the mail server's HTTP admin API.

    The server must expose three JSON endpoints, relative to ``base_url``:

    - ``PUT {antispam_path}`` with ``spamassassin_enabled``,
      ``spamassassin_host`` and ``spamassassin_port``
    - ``POST {accounts_path}`` with ``address`` and ``password``
    - ``DELETE {accounts_path}/<address>``

    Servers with a different admin surface need a small adapter exposing
    these, or custom paths passed to the constructor.
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: float = 10.0, antispam_path: str = '/api/settings/antispam',
                 accounts_path: str = '/api/accounts'):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.antispam_path = antispam_path
        self.accounts_path = accounts_path.rstrip('/')

    def configure_spam_classification(self, settings: SpamClassifierSettings):
        """Point the server at the spam classifier (or switch it off)"""
        self._request('PUT', self.antispam_path, json={
            'spamassassin_enabled': settings.enabled,
            'spamassassin_host': settings.host,
            'spamassassin_port': settings.port,
        })
        logger.info(f"Spam classification {'enabled' if settings.enabled else 'disabled'} "
                    f"({settings.host}:{settings.port})")

    def create_account(self, address: str, password: str):
        self._request('POST', self.accounts_path, json={'address': address, 'password': password})
        logger.info(f"Created account {address}")

    def delete_account(self, address: str):
        self._request('DELETE', f'{self.accounts_path}/{address}')
        logger.info(f"Deleted account {address}")

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            raise PreconditionError(f"Admin API {method} {path} failed: {e}") from e
        return response


class SpamClassifierProbe:
    """Checks that a spamd-compatible classifier answers PING"""

    def __init__(self, host: str = '127.0.0.1', port: int = 783, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    def assert_running(self):
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout) as sock:
                sock.sendall(b"PING SPAMC/1.5\r\n\r\n")
                sock.shutdown(socket.SHUT_WR)
                response = self._read_response(sock)
        except OSError as e:
            raise PreconditionError(
                f"Spam classifier not reachable at {self.host}:{self.port}: {e}") from e

        if "PONG" not in response:
            raise PreconditionError(
                f"Spam classifier at {self.host}:{self.port} gave unexpected reply: {response!r}")
        logger.info(f"Spam classifier running at {self.host}:{self.port}")

    @staticmethod
    def _read_response(sock: socket.socket) -> str:
        buffer = b""
        while b"\n" not in buffer:
            data = sock.recv(1024)
            if not data:
                break
            buffer += data
        return buffer.decode('utf-8', errors='replace').strip()


class TestEnvironment:
    """Prepares the server for one run and tears the account down after.

    Entering configures spam classification, probes the classifier, creates
    the dedicated account and checks the mailbox starts empty. Any failure
    here is a PreconditionError and no load is generated.
    """

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, config: HarnessConfig, admin: ServerAdmin, inspector,
                 probe: Optional[SpamClassifierProbe] = None):
        self.config = config
        self.admin = admin
        self.inspector = inspector
        self.probe = probe or SpamClassifierProbe(config.classifier.host, config.classifier.port)
        self._created = False

    def __enter__(self) -> "TestEnvironment":
        self.setup()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.teardown()
            return
        # Keep the run's own failure; a cleanup error must not replace it
        try:
            self.teardown()
        except HarnessError as e:
            logger.warning(f"Teardown failed after an earlier error: {e}")

    def setup(self):
        self.admin.configure_spam_classification(self.config.classifier)
        if self.config.classifier.enabled:
            self.probe.assert_running()

        if self.config.manage_account:
            self.admin.create_account(self.config.account_address, self.config.account_password)
            self._created = True

        try:
            pending = self.inspector.count(self.config.account_address, self.config.account_password)
        except HarnessError as e:
            self.teardown()
            raise PreconditionError(f"Cannot read mailbox {self.config.account_address}: {e}") from e
        if pending != 0:
            self.teardown()
            raise PreconditionError(
                f"Mailbox {self.config.account_address} is not empty ({pending} messages pending)")

    def teardown(self):
        if self._created:
            self._created = False
            self.admin.delete_account(self.config.account_address)
