"""
Exception taxonomy for the journey core.

Propagation rules:
  - AggregationFailed is fatal to a roadmap computation (no flags, no roadmap)
  - PrecursorMissing / GenerationFailed / PersistenceFailed / ActionInProgress
    end an orchestrator action and come back to the caller as a failed result
  - InvalidResponseShape never leaves the orchestrator: it is replaced by a
    fallback artifact
"""


class CareerPilotError(Exception):
    """Base class for every error raised by career_pilot."""


class StoreUnavailable(CareerPilotError):
    """The backing store could not be reached or answered with an error."""


class PersistenceFailed(CareerPilotError):
    """A store write failed; nothing downstream may treat the step as done."""


class AggregationFailed(CareerPilotError):
    """The journey flags could not be read, so no roadmap can be derived."""


class PrecursorMissing(CareerPilotError):
    """An action was requested before the artifact it builds on exists."""


class ActionInProgress(CareerPilotError):
    """The same action is already running for this user."""


class GenerationFailed(CareerPilotError):
    """The content generator errored. Safe to retry."""


class RateLimited(GenerationFailed):
    """The LLM gateway answered 429."""


class QuotaExhausted(GenerationFailed):
    """The LLM gateway answered 402 / out of credits."""


class GenerationTimeout(GenerationFailed):
    """The LLM gateway did not answer within the configured timeout."""


class InvalidResponseShape(CareerPilotError):
    """The generator answered, but not with the artifact shape we asked for."""

    def __init__(self, action: str, message: str, raw: str = ""):
        super().__init__(f"{action}: {message}")
        self.action = action
        self.raw = raw[:500]
