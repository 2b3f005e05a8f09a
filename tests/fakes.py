"""Fake mail server and channels shared by the unit tests"""

import threading
from collections import deque

import requests

from spamstress.errors import RetrievalError, SubmissionError

SPAM_HEADER = "X-Spam-Status: No, score=-0.1 required=5.0 tests=NONE autolearn=ham"


class FakeMailServer:
    """In-memory mail server: one FIFO mailbox per address.

    Delivered messages get the spam status header unless ``classify`` is
    off. ``accepted`` counts deliveries, including any later dropped. With
    ``delivery_delay`` set, accepted mail only lands in the mailbox after
    that many seconds, like a queue feeding the classifier.
    """

    def __init__(self, classify=True, delivery_delay=0.0):
        self.classify = classify
        self.delivery_delay = delivery_delay
        self.lock = threading.Lock()
        self.mailboxes = {}
        self.accepted = 0
        self.drop_every = 0

    def deliver(self, sender, recipient, subject, body):
        lines = []
        if self.classify:
            lines.append(SPAM_HEADER)
        lines += [f"From: {sender}", f"To: {recipient}", f"Subject: {subject}", "", body]
        with self.lock:
            self.accepted += 1
            if self.drop_every and self.accepted % self.drop_every == 0:
                return
        if self.delivery_delay:
            timer = threading.Timer(self.delivery_delay, self.inject, (recipient, "\r\n".join(lines)))
            timer.daemon = True
            timer.start()
        else:
            self.inject(recipient, "\r\n".join(lines))

    def inject(self, address, text):
        with self.lock:
            self.mailboxes.setdefault(address, deque()).append(text)

    def pending(self, address):
        with self.lock:
            return len(self.mailboxes.get(address, ()))


class FakeSubmitter:
    def __init__(self, server, fail_on=()):
        self.server = server
        self.fail_on = set(fail_on)
        self.calls = 0
        self.lock = threading.Lock()
        self.threads = set()

    def submit(self, sender, recipient, subject, body):
        with self.lock:
            self.calls += 1
            call = self.calls
            self.threads.add(threading.get_ident())
        if call in self.fail_on:
            raise SubmissionError(f"injected failure on call {call}")
        self.server.deliver(sender, recipient, subject, body)


class FakeInspector:
    def __init__(self, server, password="test"):
        self.server = server
        self.password = password
        self.count_calls = 0
        self.pops = 0

    def _check(self, password):
        if password != self.password:
            raise RetrievalError("-ERR authentication failed")

    def count(self, address, password):
        self._check(password)
        self.count_calls += 1
        return self.server.pending(address)

    def pop_oldest_text(self, address, password):
        self._check(password)
        with self.server.lock:
            mailbox = self.server.mailboxes.get(address)
            if not mailbox:
                raise RetrievalError(f"No messages pending for {address}")
            self.pops += 1
            return mailbox.popleft()


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


class FakeSession:
    def __init__(self, status_codes=None, error=None):
        self.calls = []
        self.status_codes = status_codes or {}
        self.error = error

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs.get("json")))
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status_codes.get((method, url), 200))


class FakeProbe:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    def assert_running(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
