"""
Load worker: one independent submission loop.
"""

import logging
import time
from enum import Enum
from typing import Optional

from .errors import SubmissionError
from .submitter import Envelope

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"


class LoadWorker:
    """Submits the same envelope a fixed number of times.

    ``message_count`` is fixed at construction and never changes during a
    run. Workers share nothing except the submitter, which is stateless.
    """

    def __init__(self, worker_id: int, submitter, envelope: Envelope,
                 message_count: int, stop_on_error: bool = True):
        if message_count < 0:
            raise ValueError(f"message_count must be >= 0, got {message_count}")
        self.worker_id = worker_id
        self.submitter = submitter
        self.envelope = envelope
        self.message_count = message_count
        self.stop_on_error = stop_on_error
        self.state = WorkerState.IDLE
        self.sent = 0
        self.errors = []
        self.duration = 0.0

    @property
    def error(self) -> Optional[SubmissionError]:
        """First submission failure seen by this worker, if any"""
        return self.errors[0] if self.errors else None

    def run(self) -> "LoadWorker":
        """Worker loop; returns itself so futures carry the finished worker"""
        if self.state is not WorkerState.IDLE:
            raise RuntimeError(f"Worker {self.worker_id} already started")
        self.state = WorkerState.RUNNING
        start_time = time.time()
        env = self.envelope
        try:
            for i in range(self.message_count):
                try:
                    self.submitter.submit(env.sender, env.recipient, env.subject, env.body)
                    self.sent += 1
                except SubmissionError as e:
                    self.errors.append(e)
                    logger.error(f"Worker {self.worker_id} message {i + 1} failed: {e}")
                    if self.stop_on_error:
                        break
        finally:
            self.duration = time.time() - start_time
            self.state = WorkerState.DONE
        logger.debug(f"Worker {self.worker_id} done: {self.sent}/{self.message_count} sent")
        return self
