"""
Exceptions raised by the crisis prediction services.
"""
from typing import List, Optional


class CrisisPredictionError(Exception):
    """Base class for failures while evaluating a crisis prediction."""


class SignalFetchError(CrisisPredictionError):
    """
    One or more signal reads failed.

    Attributes:
        failed_kinds: Signal kinds whose read failed (e.g. ['tasks'])
        timed_out: True when the reads did not finish within the timeout
    """

    def __init__(self, message: str, failed_kinds: Optional[List[str]] = None, timed_out: bool = False):
        super().__init__(message)
        self.failed_kinds = failed_kinds or []
        self.timed_out = timed_out


class PredictionWriteError(CrisisPredictionError):
    """Persisting the prediction failed."""


__all__ = ["CrisisPredictionError", "SignalFetchError", "PredictionWriteError"]
