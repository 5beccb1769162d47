"""Exception types that cross module boundaries.

Selector resolution never raises (it returns ``NotFound``); these are for the
failures a caller has to treat differently.
"""
from __future__ import annotations


class AutopilotError(Exception):
    pass


class AuthenticationError(AutopilotError):
    """Login did not reach the feed."""


class VerificationRequired(AuthenticationError):
    """LinkedIn showed a checkpoint challenge and no code was configured.

    Cannot be retried automatically; an operator has to log in by hand
    (``autopilot login``) or set ``VERIFICATION_CODE``.
    """


class LoginFailed(AuthenticationError):
    pass


class LLMResponseError(AutopilotError):
    """The model answered, but not with the JSON the call site expects."""


class RunInProgress(AutopilotError):
    """Another orchestrator holds the run lock."""
