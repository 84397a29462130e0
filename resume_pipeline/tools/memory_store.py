from __future__ import annotations
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import JobNotFoundError
from ..state import CandidateProfile, JobRequirement, PriorityTier
from .base import WriteResult


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryStore:
    """Dict-backed store covering jobs, candidates, profiles, risk, scores and audit.

    Every access goes through one lock, so it can sit behind the scoring
    fan-out and concurrent runs.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.jobs: Dict[str, JobRequirement] = {}
        self.candidates: Dict[str, Dict[str, Any]] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.risk: Dict[str, Dict[str, Any]] = {}
        self.scores: Dict[str, Dict[str, Any]] = {}
        self.audit_log: List[Dict[str, Any]] = []

    # -------- seeding --------
    def add_job(self, job_id: str, job: JobRequirement) -> None:
        with self._lock:
            self.jobs[job_id] = job

    def add_candidate(self, candidate_id: str, job_id: str, priority: str = "low", **extra: Any) -> None:
        with self._lock:
            self.candidates[candidate_id] = {
                "id": candidate_id,
                "job_id": job_id,
                "priority": PriorityTier.coerce(priority).value,
                "priority_score": 0,
                "status": "UPLOADED",
                **extra,
            }

    # -------- JobStore --------
    def get_job(self, job_id: str) -> JobRequirement:
        with self._lock:
            job = self.jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    # -------- CandidateStore / PriorityTierSource --------
    def get_candidate(self, candidate_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self.candidates.get(candidate_id)
            return dict(record) if record else None

    def get_risk(self, candidate_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self.risk.get(candidate_id)
            return dict(record) if record else None

    def get_priority(self, candidate_id: str) -> Optional[PriorityTier]:
        record = self.get_candidate(candidate_id)
        if not record or not record.get("priority"):
            return None
        return PriorityTier.coerce(record["priority"])

    # -------- ProfileStore --------
    def save_profile(self, candidate_id: str, raw_text: str, profile: CandidateProfile) -> WriteResult:
        with self._lock:
            self.profiles[candidate_id] = {
                "candidate_id": candidate_id,
                "raw_text": raw_text,
                "profile_json": profile.model_dump(by_alias=True),
                "created_at": _now_iso(),
            }
        return WriteResult()

    # -------- DuplicateLookup --------
    def find_duplicates(self, email: str, job_id: str, exclude_candidate_id: str) -> List[str]:
        with self._lock:
            matches = []
            for candidate_id, row in self.profiles.items():
                if candidate_id == exclude_candidate_id:
                    continue
                candidate = self.candidates.get(candidate_id)
                if not candidate or candidate.get("job_id") != job_id:
                    continue
                stored = (row["profile_json"].get("email") or "").strip().lower()
                if stored == email:
                    matches.append(candidate_id)
            return matches

    # -------- PersistenceSink --------
    def upsert_risk(self, candidate_id: str, record: Dict[str, Any]) -> WriteResult:
        with self._lock:
            self.risk[candidate_id] = {**record, "candidate_id": candidate_id}
        return WriteResult()

    def update_candidate_rank(self, candidate_id: str, rank: int, status: str) -> WriteResult:
        with self._lock:
            record = self.candidates.get(candidate_id)
            if record is None:
                return WriteResult(ok=False, error=f"Candidate {candidate_id} does not exist")
            record.update({"priority_score": rank, "status": status, "updated_at": _now_iso()})
        return WriteResult()

    def upsert_scores(self, candidate_id: str, scores: Dict[str, Any]) -> WriteResult:
        with self._lock:
            self.scores[candidate_id] = {"candidate_id": candidate_id, "scores_json": scores}
        return WriteResult()

    def append_audit(self, candidate_id: str, step: str, status: str, details: Dict[str, Any]) -> WriteResult:
        with self._lock:
            self.audit_log.append({
                "candidate_id": candidate_id,
                "step": step,
                "status": status,
                "details": details,
                "created_at": _now_iso(),
            })
        return WriteResult()

    def audit_trail(self, candidate_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [row for row in self.audit_log if row["candidate_id"] == candidate_id]
