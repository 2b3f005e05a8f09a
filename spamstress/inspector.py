"""
POP3 retrieval channel used during verification.
"""

import logging
import poplib

from .errors import RetrievalError

logger = logging.getLogger(__name__)


class MailboxInspector:
    """Reads a mailbox over POP3.

    Every call opens its own session. ``pop_oldest_text`` deletes what it
    returns, and the deletion is committed when the session quits.
    """

    def __init__(self, host: str = 'localhost', port: int = 110, timeout: float = 30.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    def count(self, address: str, password: str) -> int:
        """Return the number of messages waiting in the mailbox"""
        pop = self._login(address, password)
        try:
            count, _size = pop.stat()
        except (poplib.error_proto, OSError) as e:
            self._abort(pop)
            raise RetrievalError(f"STAT failed for {address}: {e}") from e
        self._quit(pop, address)
        return count

    def pop_oldest_text(self, address: str, password: str) -> str:
        """Return the full text of the oldest message and delete it"""
        pop = self._login(address, password)
        try:
            count, _size = pop.stat()
            if count == 0:
                raise RetrievalError(f"No messages pending for {address}")
            _response, lines, _octets = pop.retr(1)
            pop.dele(1)
        except (poplib.error_proto, OSError) as e:
            self._abort(pop)
            raise RetrievalError(f"Failed to retrieve oldest message for {address}: {e}") from e
        except RetrievalError:
            self._abort(pop)
            raise
        self._quit(pop, address)
        return b"\r\n".join(lines).decode('utf-8', errors='replace')

    def _login(self, address: str, password: str) -> poplib.POP3:
        try:
            pop = poplib.POP3(self.host, self.port, timeout=self.timeout)
        except OSError as e:
            raise RetrievalError(f"Could not connect to POP3 server {self.host}:{self.port}: {e}") from e
        try:
            pop.user(address)
            pop.pass_(password)
        except (poplib.error_proto, OSError) as e:
            self._abort(pop)
            raise RetrievalError(f"POP3 login failed for {address}: {e}") from e
        return pop

    @staticmethod
    def _quit(pop: poplib.POP3, address: str):
        try:
            pop.quit()
        except (poplib.error_proto, OSError) as e:
            # QUIT commits deletions, so a failure here leaves the mailbox unchanged
            raise RetrievalError(f"POP3 QUIT failed for {address}: {e}") from e

    @staticmethod
    def _abort(pop: poplib.POP3):
        # Closing without QUIT rolls back any DELE issued in this session
        try:
            pop.close()
        except OSError:
            logger.debug("Error closing POP3 socket", exc_info=True)
