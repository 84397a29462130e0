from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .errors import StateTransitionError


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# -------- Candidate input --------
class ExperienceEntry(_CamelModel):
    company: str | None = None
    title: str | None = None
    start_date: str | None = Field(default=None, alias="startDate")
    end_date: str | None = Field(default=None, alias="endDate")
    highlights: list[str] = Field(default_factory=list)


class EducationEntry(_CamelModel):
    degree: str | None = None
    institution: str | None = None
    year: str | None = None


class ProfileLinks(_CamelModel):
    linkedin: str | None = None
    github: str | None = None
    portfolio: str | None = None


class CandidateProfile(_CamelModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    location: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: list[ExperienceEntry] = Field(default_factory=list)
    education: list[EducationEntry] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)
    links: ProfileLinks | None = None


class JobRequirement(_CamelModel):
    job_id: str | None = Field(default=None, alias="jobId")
    title: str | None = None
    must_have_skills: list[str] = Field(default_factory=list, alias="mustHaveSkills")
    good_to_have_skills: list[str] = Field(default_factory=list, alias="goodToHaveSkills")
    min_exp_years: float = Field(default=0, alias="minExpYears")
    max_exp_years: float | None = Field(default=None, alias="maxExpYears")


class PriorityTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def coerce(cls, value: Any) -> "PriorityTier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.LOW


# -------- Stage results --------
DUPLICATE_FLAG = "DUPLICATE_APPLICATION_DETECTED"


class FraudAssessment(_CamelModel):
    fraud_score: int = Field(default=0, ge=0, le=100, alias="fraudScore")
    flags: list[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def duplicate_detected(self) -> bool:
        return bool(self.details.get("duplicateDetected")) or DUPLICATE_FLAG in self.flags


class TrustSignal(_CamelModel):
    type: str
    result: str
    confidence: float


class VerificationResult(_CamelModel):
    enabled: bool = False
    checks_attempted: list[str] = Field(default_factory=list, alias="checksAttempted")
    trust_signals: list[TrustSignal] = Field(default_factory=list, alias="trustSignals")
    trust_score: int = Field(default=0, alias="trustScore")

    @classmethod
    def disabled(cls) -> "VerificationResult":
        return cls(enabled=False, checks_attempted=[], trust_score=0)


class ScoreBreakdown(_CamelModel):
    skill_match_score: int = Field(ge=0, le=100, alias="skillMatchScore")
    experience_relevance_score: int = Field(ge=0, le=100, alias="experienceRelevanceScore")
    education_fit_score: int = Field(ge=0, le=100, alias="educationFitScore")
    overall_score: int = Field(ge=0, le=100, alias="overallScore")
    explainability: list[str] = Field(default_factory=list)


class WriteOutcome(BaseModel):
    name: str
    status: str  # "ok" | "error" | "rejected"
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


# -------- Pipeline state --------
class Status(str, Enum):
    START = "START"
    PARSED = "PARSED"
    FRAUD_CHECKED = "FRAUD_CHECKED"
    DONE = "DONE"
    FAILED = "FAILED"


_STATUS_ORDER = {Status.START: 0, Status.PARSED: 1, Status.FRAUD_CHECKED: 2, Status.DONE: 3}
TERMINAL = {Status.DONE, Status.FAILED}

_IDENTIFIERS = ("candidate_id", "job_id")
_LAST_WRITE_WINS = (
    "priority",
    "verification_enabled",
    "raw_text",
    "structured_profile",
    "fraud_result",
    "verification_result",
    "evaluation",
    "final_rank",
    "persistence",
)


class PipelineState(BaseModel):
    # Input
    candidate_id: str
    job_id: str
    priority: PriorityTier | None = None
    verification_enabled: bool = False

    # Intermediate
    raw_text: Optional[str] = None
    structured_profile: Optional[CandidateProfile] = None
    fraud_result: Optional[FraudAssessment] = None
    verification_result: Optional[VerificationResult] = None

    # Output
    evaluation: Optional[ScoreBreakdown] = None
    final_rank: int = 0
    status: Status = Status.START
    errors: List[str] = Field(default_factory=list)
    persistence: List[WriteOutcome] = Field(default_factory=list)

    def merge(self, update: Dict[str, Any]) -> "PipelineState":
        """Fold a stage's partial update into the state.

        errors are concatenated; every other field is last-write-wins and a
        None value keeps what is already there.
        """
        for name, value in update.items():
            if name == "errors":
                self.errors = self.errors + list(value or [])
            elif name == "status":
                if value is not None:
                    self.status = _next_status(self.status, Status(value))
            elif name in _IDENTIFIERS:
                current = getattr(self, name)
                if value is not None and current is not None and value != current:
                    raise StateTransitionError(f"{name} is immutable once set ({current!r} -> {value!r})")
                if value is not None:
                    setattr(self, name, value)
            elif name in _LAST_WRITE_WINS:
                if value is not None:
                    setattr(self, name, value)
            else:
                raise KeyError(f"Unknown pipeline state field: {name}")
        return self

    @property
    def failed(self) -> bool:
        return self.status == Status.FAILED


def _next_status(current: Status, new: Status) -> Status:
    if new == current:
        return current
    if current in TERMINAL:
        raise StateTransitionError(f"Run already finished with {current.value}; cannot move to {new.value}")
    if new == Status.FAILED:
        return new
    if _STATUS_ORDER[new] < _STATUS_ORDER[current]:
        raise StateTransitionError(f"Status cannot move backwards ({current.value} -> {new.value})")
    return new
