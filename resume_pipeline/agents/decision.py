from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..config import Settings, get_settings
from ..state import PipelineState, Status
from ..tools.base import Notifier

logger = logging.getLogger(__name__)

PROCEED = "PROCEED"
HOLD = "HOLD"
REJECT = "REJECT"


def recommend(final_rank: int, fraud_score: int, status: Optional[str] = None) -> str:
    if status == "SHORTLISTED" or (final_rank >= 75 and fraud_score < 40):
        return PROCEED
    if status == "REJECTED" or final_rank < 40 or fraud_score > 60:
        return REJECT
    return HOLD


def auto_email_action(final_rank: int, settings: Optional[Settings] = None) -> Optional[str]:
    """Which email, if any, a finished run should trigger on its own."""
    settings = settings or get_settings()
    if final_rank >= settings.SHORTLIST_THRESHOLD:
        return "shortlist"
    if final_rank < settings.REJECT_THRESHOLD:
        return "reject"
    return None


def dispatch_decision(state: PipelineState, notifier: Notifier, settings: Optional[Settings] = None) -> bool:
    """Send the automatic shortlist/reject email for a successful run.

    Returns whether an email went out. Notifier failures are logged and
    swallowed: the evaluation result stands on its own.
    """
    if state.status != Status.DONE or state.errors:
        return False
    action = auto_email_action(state.final_rank, settings)
    if action is None:
        return False
    try:
        notifier.send(state.candidate_id, action)
    except Exception as e:
        logger.warning("Auto-email failed for %s: %s", state.candidate_id, e)
        return False
    return True


def summarize(state: PipelineState) -> Dict[str, Any]:
    """Result object for a pipeline run."""
    profile = state.structured_profile
    fraud = state.fraud_result
    verification = state.verification_result
    evaluation = state.evaluation
    fraud_score = fraud.fraud_score if fraud else 0
    return {
        "candidateId": state.candidate_id,
        "jobId": state.job_id,
        "status": state.status.value,
        "errors": list(state.errors),
        "parsing": {
            "parsed": bool(state.raw_text),
            "fieldsExtracted": sorted(profile.model_fields_set) if profile else [],
        },
        "verification": {
            "enabled": bool(verification and verification.enabled),
            "checksAttempted": list(verification.checks_attempted) if verification else [],
            "trustScore": verification.trust_score if verification else 0,
        },
        "fraud": {
            "fraudScore": fraud_score,
            "flags": list(fraud.flags) if fraud and fraud.flags else ["NONE"],
            "duplicateDetected": bool(fraud and fraud.duplicate_detected),
        },
        "evaluation": evaluation.model_dump(by_alias=True) if evaluation else {},
        "rank": state.final_rank,
        "recommendation": recommend(state.final_rank, fraud_score),
        "persistence": [o.model_dump() for o in state.persistence],
        "processedAt": datetime.now(timezone.utc).isoformat(),
    }


def build_leaderboard(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    for record in records:
        profile = record.get("profile_json") or {}
        rows.append({
            "candidateId": record.get("id"),
            "name": profile.get("name") or "Unknown Candidate",
            "email": profile.get("email") or "N/A",
            "status": record.get("status"),
            "score": record.get("priority_score") or 0,
            "skills": list(profile.get("skills") or [])[:5],
        })
    return sorted(rows, key=lambda row: row["score"], reverse=True)
