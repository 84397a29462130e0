from __future__ import annotations


class PipelineError(Exception):
    """Base class for candidate evaluation errors."""


class ParseFailure(PipelineError):
    """Resume could not be turned into a structured profile. Fatal for the run."""


class FraudAnalysisDegraded(PipelineError):
    """AI suspicion analysis produced no usable answer. Never fatal."""


class JobNotFoundError(PipelineError):
    """Job requirements could not be resolved. Fatal for scoring."""

    def __init__(self, job_id: str | None):
        self.job_id = job_id
        super().__init__("Target Job ID not found for scoring.")


JobNotFound = JobNotFoundError


class PersistenceWriteFailure(PipelineError):
    """A single persistence write failed. Logged, never escalated."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(f"{name}: {message}")


class ProviderUnavailable(PipelineError):
    """No configured chat model provider could be built or answered."""


class LookupRetryExhausted(PipelineError):
    def __init__(self, candidate_id: str):
        self.candidate_id = candidate_id
        super().__init__(f"Candidate ID {candidate_id} still not found after retry.")


class StateTransitionError(PipelineError):
    """Illegal write to PipelineState (identifier change or backward status)."""
