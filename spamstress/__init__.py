"""
Concurrent stress harness for a mail server's spam classification pipeline.
"""

from .config import DEFAULT_MARKER, HarnessConfig, ServerEndpoints, SpamClassifierSettings
from .environment import ServerAdmin, SpamClassifierProbe, TestEnvironment
from .errors import (HarnessError, PreconditionError, RetrievalError, SubmissionError,
                     VerificationError)
from .inspector import MailboxInspector
from .monitor import ResourceMonitor, ResourceSample
from .runner import ScenarioResult, StressRunner
from .submitter import Envelope, MessageSubmitter
from .worker import LoadWorker, WorkerState

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_MARKER",
    "Envelope",
    "HarnessConfig",
    "HarnessError",
    "LoadWorker",
    "MailboxInspector",
    "MessageSubmitter",
    "PreconditionError",
    "ResourceMonitor",
    "ResourceSample",
    "RetrievalError",
    "ScenarioResult",
    "ServerAdmin",
    "ServerEndpoints",
    "SpamClassifierProbe",
    "SpamClassifierSettings",
    "StressRunner",
    "SubmissionError",
    "TestEnvironment",
    "VerificationError",
    "WorkerState",
]
