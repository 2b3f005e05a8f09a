"""
Exception types raised by the stress harness.
"""

from typing import Optional


class HarnessError(Exception):
    """Base class for every failure raised by the harness"""


class PreconditionError(HarnessError):
    """Environment is not ready for a run (classifier down, account setup failed)"""


class SubmissionError(HarnessError):
    """A single message could not be handed to the submission channel"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RetrievalError(HarnessError):
    """The retrieval channel failed or had nothing to return"""


class VerificationError(HarnessError, AssertionError):
    """Delivered mail did not match what the scenario expected.

    ``content`` holds the full text of the offending message when the
    failure is about a single message, so reports show what was received
    rather than a bare boolean.
    """

    def __init__(self, message: str, expected: Optional[int] = None,
                 actual: Optional[int] = None, content: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.content = content
