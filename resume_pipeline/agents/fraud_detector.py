"""Fraud detection for candidate profiles.

Checks run in a fixed order. A duplicate application is the strongest and
cheapest signal, so it pins the score at DUPLICATE_BASE_SCORE and the
timeline heuristic is skipped. The AI suspicion score is added on top of
whichever rule-based score came out, and a failing AI call only costs its
own contribution.
"""

from __future__ import annotations
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ..state import DUPLICATE_FLAG, CandidateProfile, FraudAssessment
from ..tools.base import DuplicateLookup, SuspicionAnalyzer
from ..utils import clamp, parse_date, resolve_end_date, round_half_up, truncate_utf8

logger = logging.getLogger(__name__)

DUPLICATE_BASE_SCORE = 85
TIMELINE_GAP_PENALTY = 10
MAX_GAP_MONTHS = 6
DAYS_PER_MONTH = 30
SYSTEM_ERROR_FLAG = "SYSTEM_ERROR"


class SuspicionReport(BaseModel):
    ai_suspicion_score: float = Field(default=0, ge=0, le=50)
    flag_reasons: List[str] = Field(default_factory=list)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def check_duplicates(
    profile: CandidateProfile,
    candidate_id: str,
    job_id: Optional[str],
    duplicates: DuplicateLookup,
) -> List[str]:
    email = normalize_email(profile.email)
    if not email or not job_id:
        return []
    logger.info("Checking duplicates for %s in job %s", email, job_id)
    return list(duplicates.find_duplicates(email, job_id, candidate_id) or [])


def find_timeline_gaps(profile: CandidateProfile, now: Optional[datetime] = None) -> List[int]:
    """Gaps longer than MAX_GAP_MONTHS between consecutive roles, in rounded months."""
    now = now or datetime.now()
    dated = [(parse_date(e.start_date), e) for e in profile.experience]
    ordered = sorted([(start, e) for start, e in dated if start is not None], key=lambda pair: pair[0])

    gaps: List[int] = []
    for (_, current), (next_start, _) in zip(ordered, ordered[1:]):
        current_end = resolve_end_date(current.end_date, now)
        if current_end is None:
            continue
        gap_months = (next_start - current_end).days / DAYS_PER_MONTH
        if gap_months > MAX_GAP_MONTHS:
            gaps.append(round_half_up(gap_months))
    return gaps


def run_suspicion_analysis(
    profile: CandidateProfile,
    suspicion: Optional[SuspicionAnalyzer],
    payload_budget: int,
) -> SuspicionReport:
    if suspicion is None:
        logger.info("No suspicion analyzer configured; AI contribution is 0")
        return SuspicionReport()
    payload = truncate_utf8(json.dumps(profile.model_dump(by_alias=True)), payload_budget)
    try:
        return SuspicionReport.model_validate(suspicion.analyze(payload))
    except Exception as e:
        logger.warning("AI fraud analysis bypassed: %s", e)
        return SuspicionReport()


def assess_fraud(
    profile: CandidateProfile,
    raw_text: Optional[str],
    candidate_id: str,
    job_id: Optional[str],
    *,
    duplicates: DuplicateLookup,
    suspicion: Optional[SuspicionAnalyzer] = None,
    payload_budget: int = 4000,
    now: Optional[datetime] = None,
) -> FraudAssessment:
    try:
        flags: List[str] = []
        fraud_score = 0.0

        matches = check_duplicates(profile, candidate_id, job_id, duplicates)
        duplicate_detected = bool(matches)
        if duplicate_detected:
            flags.append(DUPLICATE_FLAG)
            fraud_score = DUPLICATE_BASE_SCORE
            logger.warning("Duplicate application: %s other record(s) for %s", len(matches), candidate_id)

        gaps: List[int] = []
        if not duplicate_detected:
            gaps = find_timeline_gaps(profile, now)
            for months in gaps:
                flags.append(f"TIMELINE_GAP_{months}_MONTHS")
                fraud_score += TIMELINE_GAP_PENALTY

        report = run_suspicion_analysis(profile, suspicion, payload_budget)
        for reason in report.flag_reasons:
            if reason not in flags:
                flags.append(reason)

        final_score = int(clamp(round_half_up(fraud_score + report.ai_suspicion_score)))
        details: Dict[str, Any] = {
            "duplicateDetected": duplicate_detected,
            "duplicateCount": len(matches),
            "timelineGaps": gaps,
            "aiScore": report.ai_suspicion_score,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return FraudAssessment(fraud_score=final_score, flags=flags, details=details)
    except Exception as e:
        logger.exception("Fraud service failure for %s", candidate_id)
        return FraudAssessment(
            fraud_score=0,
            flags=[SYSTEM_ERROR_FLAG],
            details={"duplicateDetected": False, "error": str(e)},
        )
