"""
Stress scenarios: generate load, wait for every worker, then drain and
verify the mailbox.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from .config import DEFAULT_DELIVERY_TIMEOUT, DEFAULT_MARKER, DEFAULT_POLL_INTERVAL
from .errors import SubmissionError, VerificationError
from .monitor import ResourceMonitor
from .submitter import Envelope
from .worker import LoadWorker

logger = logging.getLogger(__name__)


@dataclass
class ScenarioResult:
    """Outcome of one passed scenario"""
    scenario: str
    workers: int
    messages_per_worker: int
    expected_total: int
    verified: int
    submit_duration: float
    verify_duration: float
    peak_cpu_percent: float = 0.0
    peak_memory_mb: float = 0.0

    @property
    def messages_per_second(self) -> float:
        if self.submit_duration <= 0:
            return 0.0
        return self.expected_total / self.submit_duration

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['messages_per_second'] = self.messages_per_second
        return data


class StressRunner:
    """Drives the sequential and concurrent scenarios against one mailbox.

    The submitter and inspector are injected, and the runner holds no state
    between scenarios besides its configuration.
    """

    def __init__(self, submitter, inspector, address: str, password: str,
                 marker: str = DEFAULT_MARKER, envelope: Optional[Envelope] = None,
                 stop_worker_on_error: bool = True, monitor_resources: bool = False,
                 delivery_timeout: float = DEFAULT_DELIVERY_TIMEOUT,
                 poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.submitter = submitter
        self.inspector = inspector
        self.address = address
        self.password = password
        self.marker = marker
        self.envelope = envelope or Envelope(address, address, "test", "test")
        self.stop_worker_on_error = stop_worker_on_error
        self.monitor_resources = monitor_resources
        self.delivery_timeout = delivery_timeout
        self.poll_interval = poll_interval

    def run_sequential(self, count: int) -> ScenarioResult:
        """Submit ``count`` messages on the calling thread, then verify them"""
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        logger.info(f"Sequential scenario: submitting {count} messages")

        start_time = time.time()
        env = self.envelope
        for _ in range(count):
            self.submitter.submit(env.sender, env.recipient, env.subject, env.body)
        submit_duration = time.time() - start_time

        verify_start = time.time()
        verified = self.verify(count)
        return ScenarioResult(
            scenario="sequential",
            workers=1,
            messages_per_worker=count,
            expected_total=count,
            verified=verified,
            submit_duration=submit_duration,
            verify_duration=time.time() - verify_start,
        )

    def run_concurrent(self, workers: int, messages_per_worker: int) -> ScenarioResult:
        """Run ``workers`` submission loops in parallel, join all, then verify"""
        if workers < 0 or messages_per_worker < 0:
            raise ValueError("workers and messages_per_worker must be >= 0")
        total = workers * messages_per_worker
        logger.info(f"Concurrent scenario: {workers} workers x {messages_per_worker} messages "
                    f"= {total} total")

        load_workers = [
            LoadWorker(i, self.submitter, self.envelope, messages_per_worker,
                       stop_on_error=self.stop_worker_on_error)
            for i in range(workers)
        ]

        monitor = ResourceMonitor() if self.monitor_resources else None
        start_time = time.time()
        if monitor:
            monitor.start()
        try:
            self._run_workers(load_workers)
        finally:
            if monitor:
                monitor.stop()
        submit_duration = time.time() - start_time

        failed = [w for w in load_workers if w.errors]
        if failed:
            sent = sum(w.sent for w in load_workers)
            first = failed[0]
            raise SubmissionError(
                f"{len(failed)} of {workers} workers hit submission failures "
                f"({sent}/{total} messages sent); first from worker {first.worker_id}: {first.error}",
                first.error)

        verify_start = time.time()
        verified = self.verify(total)
        return ScenarioResult(
            scenario="concurrent",
            workers=workers,
            messages_per_worker=messages_per_worker,
            expected_total=total,
            verified=verified,
            submit_duration=submit_duration,
            verify_duration=time.time() - verify_start,
            peak_cpu_percent=monitor.peak_cpu_percent if monitor else 0.0,
            peak_memory_mb=monitor.peak_memory_mb if monitor else 0.0,
        )

    def _run_workers(self, load_workers: List[LoadWorker]):
        """Start every worker and return only once all of them are done"""
        if not load_workers:
            return
        unexpected = None
        with ThreadPoolExecutor(max_workers=len(load_workers),
                                thread_name_prefix="load-worker") as executor:
            future_to_worker = {executor.submit(w.run): w for w in load_workers}
            for future in as_completed(future_to_worker):
                worker = future_to_worker[future]
                try:
                    future.result()
                    logger.info(f"Worker {worker.worker_id} completed: "
                                f"{worker.sent}/{worker.message_count} sent in {worker.duration:.2f}s")
                except Exception as e:
                    logger.error(f"Worker {worker.worker_id} crashed: {e}")
                    if unexpected is None:
                        unexpected = e
        if unexpected is not None:
            raise unexpected

    def verify(self, expected: int) -> int:
        """Drain exactly ``expected`` messages, checking each for the marker.

        The pending count must reach ``expected`` before anything is popped.
        Stops at the first message without the marker.
        """
        self._wait_for_delivery(expected)

        logger.info(f"Verifying {expected} messages in {self.address}")
        for i in range(expected):
            content = self.inspector.pop_oldest_text(self.address, self.password)
            if self.marker not in content:
                raise VerificationError(
                    f"Message {i + 1}/{expected} has no {self.marker} header:\n{content}",
                    expected=expected, actual=i, content=content)
            logger.debug(f"Message {i + 1}/{expected} carries {self.marker}")

        logger.info(f"All {expected} messages carry {self.marker}")
        return expected

    def _wait_for_delivery(self, expected: int):
        """Poll the mailbox until it holds exactly ``expected`` messages.

        An SMTP accept only means the message is queued; classification and
        storage happen afterwards, so a short count is re-polled until
        ``delivery_timeout`` expires. A count above ``expected`` fails at once.
        """
        deadline = time.monotonic() + self.delivery_timeout
        while True:
            pending = self.inspector.count(self.address, self.password)
            if pending > expected:
                raise VerificationError(
                    f"Expected {expected} messages in {self.address}, found {pending}: "
                    f"{pending - expected} unexpected message(s) in mailbox",
                    expected=expected, actual=pending)
            if pending == expected:
                return
            if time.monotonic() >= deadline:
                raise VerificationError(
                    f"Expected {expected} messages in {self.address}, found {pending} after "
                    f"waiting {self.delivery_timeout:.1f}s: {expected - pending} message(s) lost",
                    expected=expected, actual=pending)
            logger.debug(f"{pending}/{expected} messages delivered to {self.address}, waiting")
            time.sleep(self.poll_interval)
