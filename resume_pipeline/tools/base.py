"""Contracts for everything the pipeline talks to but does not own."""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol
from pydantic import BaseModel, Field

from ..state import CandidateProfile, JobRequirement, PriorityTier, VerificationResult


class ParsedResume(BaseModel):
    raw_text: str
    structured_profile: CandidateProfile


class WriteResult(BaseModel):
    """Outcome of a store write that reached the store.

    ok=False is a data-level rejection (constraint, bad payload); transport
    problems are raised instead.
    """

    ok: bool = True
    error: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ResumeParser(Protocol):
    def parse(self, candidate_id: str, job_id: str) -> ParsedResume: ...


class ProfileStore(Protocol):
    def save_profile(self, candidate_id: str, raw_text: str, profile: CandidateProfile) -> WriteResult: ...


class DuplicateLookup(Protocol):
    def find_duplicates(self, email: str, job_id: str, exclude_candidate_id: str) -> List[str]: ...


class SuspicionAnalyzer(Protocol):
    def analyze(self, profile_json: str) -> Dict[str, Any]: ...


class JobStore(Protocol):
    def get_job(self, job_id: str) -> JobRequirement: ...


class Verifier(Protocol):
    def verify(self, profile: CandidateProfile) -> VerificationResult: ...


class PriorityTierSource(Protocol):
    def get_priority(self, candidate_id: str) -> Optional[PriorityTier]: ...


class CandidateStore(Protocol):
    def get_candidate(self, candidate_id: str) -> Optional[Dict[str, Any]]: ...

    def get_risk(self, candidate_id: str) -> Optional[Dict[str, Any]]: ...


class PersistenceSink(Protocol):
    def upsert_risk(self, candidate_id: str, record: Dict[str, Any]) -> WriteResult: ...

    def update_candidate_rank(self, candidate_id: str, rank: int, status: str) -> WriteResult: ...

    def upsert_scores(self, candidate_id: str, scores: Dict[str, Any]) -> WriteResult: ...

    def append_audit(self, candidate_id: str, step: str, status: str, details: Dict[str, Any]) -> WriteResult: ...


class Notifier(Protocol):
    def send(self, candidate_id: str, kind: str) -> None: ...
