from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List

import pytest
from langchain_core.messages import AIMessage

from resume_pipeline.config import Settings
from resume_pipeline.graph.workflow import PipelineDeps
from resume_pipeline.state import CandidateProfile, JobRequirement
from resume_pipeline.agents.cv_parser import StaticResumeParser
from resume_pipeline.tools.memory_store import InMemoryStore

FIXED_NOW = datetime(2024, 1, 1)


class FakeLLM:
    """Returns canned responses and records the messages it was sent."""

    def __init__(self, *responses: str):
        self.responses = list(responses)
        self.calls: List[Any] = []

    def invoke(self, messages):
        self.calls.append(messages)
        return AIMessage(content=self.responses.pop(0))


class FakeSuspicion:
    def __init__(self, result: Any = None, error: Exception | None = None):
        self.result = result if result is not None else {"ai_suspicion_score": 0, "flag_reasons": []}
        self.error = error
        self.payloads: List[str] = []

    def analyze(self, profile_json: str) -> Dict[str, Any]:
        self.payloads.append(profile_json)
        if self.error:
            raise self.error
        return self.result


class FakeDuplicates:
    def __init__(self, matches: List[str] | None = None):
        self.matches = matches or []
        self.calls: List[tuple] = []

    def find_duplicates(self, email, job_id, exclude_candidate_id):
        self.calls.append((email, job_id, exclude_candidate_id))
        return list(self.matches)


class CountingVerifier:
    def __init__(self, error: Exception | None = None):
        self.calls = 0
        self.error = error

    def verify(self, profile):
        from resume_pipeline.state import VerificationResult
        self.calls += 1
        if self.error:
            raise self.error
        return VerificationResult(enabled=True, checks_attempted=["identity"], trust_score=20)


class CountingStore(InMemoryStore):
    """InMemoryStore that counts calls per method."""

    def __init__(self):
        super().__init__()
        self.calls: Dict[str, int] = {}

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    def get_job(self, job_id):
        self._count("get_job")
        return super().get_job(job_id)

    def find_duplicates(self, email, job_id, exclude_candidate_id):
        self._count("find_duplicates")
        return super().find_duplicates(email, job_id, exclude_candidate_id)

    def upsert_risk(self, candidate_id, record):
        self._count("upsert_risk")
        return super().upsert_risk(candidate_id, record)

    def update_candidate_rank(self, candidate_id, rank, status):
        self._count("update_candidate_rank")
        return super().update_candidate_rank(candidate_id, rank, status)

    def upsert_scores(self, candidate_id, scores):
        self._count("upsert_scores")
        return super().upsert_scores(candidate_id, scores)

    def append_audit(self, candidate_id, step, status, details):
        self._count("append_audit")
        return super().append_audit(candidate_id, step, status, details)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, VERIFICATION_ENABLED=False, RERANK_RETRY_DELAY=0)


@pytest.fixture
def job() -> JobRequirement:
    return JobRequirement.model_validate({
        "mustHaveSkills": ["python", "sql"],
        "goodToHaveSkills": ["docker"],
        "minExpYears": 5,
        "maxExpYears": 10,
    })


@pytest.fixture
def profile() -> CandidateProfile:
    return CandidateProfile.model_validate({
        "name": "Jane Doe",
        "email": "jane.doe@example.com",
        "skills": ["Python", "SQL", "Docker"],
        "experience": [
            {"company": "Acme", "title": "Data Engineer", "startDate": "2015-01", "endDate": "Present"},
        ],
        "education": [{"degree": "B.Sc Computer Science", "institution": "State University", "year": "2014"}],
    })


@pytest.fixture
def store(job) -> CountingStore:
    s = CountingStore()
    s.add_job("JOB-1", job)
    s.add_candidate("CAND-1", "JOB-1", priority="high", name="Jane Doe")
    return s


@pytest.fixture
def make_deps(store, profile):
    def _make(**overrides) -> PipelineDeps:
        deps = dict(
            parser=StaticResumeParser({"CAND-1": profile}),
            profiles=store,
            duplicates=store,
            jobs=store,
            sink=store,
            priorities=store,
        )
        deps.update(overrides)
        return PipelineDeps(**deps)
    return _make
