"""Final rank = overall - round(fraud * 0.35) + priority bonus, clamped to 0..100.

A detected duplicate application replaces the arithmetic result with
DUPLICATE_RANK_CAP. The pipeline and rerank_candidate both go through
consolidate_rank so the two paths cannot drift apart.
"""

from __future__ import annotations
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config import get_settings
from ..errors import LookupRetryExhausted
from ..state import PriorityTier
from ..tools.base import CandidateStore, PersistenceSink
from ..utils import clamp, round_half_up

logger = logging.getLogger(__name__)

FRAUD_PENALTY_PERCENT = 35
DUPLICATE_RANK_CAP = 15
PRIORITY_BONUS = {PriorityTier.HIGH: 10, PriorityTier.MEDIUM: 5, PriorityTier.LOW: 0}


def priority_bonus(priority: Any) -> int:
    return PRIORITY_BONUS[PriorityTier.coerce(priority)]


def fraud_penalty(fraud_score: float) -> int:
    # Integer percent keeps x.5 penalties exact (10 * 0.35 is not).
    return round_half_up(fraud_score * FRAUD_PENALTY_PERCENT / 100)


def rank_components(
    overall_score: float,
    fraud_score: float,
    priority: Any,
    duplicate_detected: bool,
) -> Dict[str, Any]:
    penalty = fraud_penalty(fraud_score)
    bonus = priority_bonus(priority)
    rank = overall_score - penalty + bonus
    if duplicate_detected:
        rank = DUPLICATE_RANK_CAP
    return {
        "overallScore": overall_score,
        "fraudScore": fraud_score,
        "fraudPenalty": penalty,
        "priorityBonus": bonus,
        "duplicateDetected": duplicate_detected,
        "finalRankScore": round_half_up(clamp(rank)),
    }


def consolidate_rank(
    overall_score: float,
    fraud_score: float,
    priority: Any,
    duplicate_detected: bool,
) -> int:
    return rank_components(overall_score, fraud_score, priority, duplicate_detected)["finalRankScore"]


def _try_lookup(store: CandidateStore, candidate_id: str) -> Optional[Dict[str, Any]]:
    try:
        return store.get_candidate(candidate_id)
    except Exception as e:
        logger.warning("Candidate lookup raised for %s: %s", candidate_id, e)
        return None


def _lookup_with_retry(store: CandidateStore, candidate_id: str, retry_delay: float) -> Dict[str, Any]:
    # The upload write may not be visible yet; wait once and look again.
    candidate = _try_lookup(store, candidate_id)
    if candidate:
        return candidate
    logger.warning("Initial lookup failed for %s. Retrying in %ss...", candidate_id, retry_delay)
    time.sleep(retry_delay)
    candidate = _try_lookup(store, candidate_id)
    if candidate:
        return candidate
    raise LookupRetryExhausted(candidate_id)


def _stored_duplicate_flag(store: CandidateStore, candidate_id: str) -> bool:
    risk = store.get_risk(candidate_id) or {}
    risk_json = risk.get("risk_json") or {}
    return bool(risk_json.get("duplicateDetected"))


def rerank_candidate(
    candidate_id: str,
    overall_score: float,
    fraud_score: float,
    *,
    store: CandidateStore,
    sink: PersistenceSink,
    retry_delay: Optional[float] = None,
    duplicate_detected: Optional[bool] = None,
) -> int:
    """Recompute and store a candidate's rank outside the pipeline.

    Returns 0 instead of raising when the candidate cannot be found or the
    rank update fails.
    """
    if retry_delay is None:
        retry_delay = get_settings().RERANK_RETRY_DELAY
    try:
        candidate = _lookup_with_retry(store, candidate_id, retry_delay)
        if duplicate_detected is None:
            duplicate_detected = _stored_duplicate_flag(store, candidate_id)
        components = rank_components(overall_score, fraud_score, candidate.get("priority"), duplicate_detected)
        final_rank = components["finalRankScore"]
        logger.info(
            "Ranking for %s: %s - %s (fraud %s) + %s = %s",
            candidate.get("name") or candidate_id, overall_score, components["fraudPenalty"],
            fraud_score, components["priorityBonus"], final_rank,
        )

        result = sink.update_candidate_rank(candidate_id, final_rank, "PROCESSED")
        if not result.ok:
            logger.error("Rank update failed for %s: %s", candidate_id, result.error)
            return 0

        scores = {**components, "calculatedAt": datetime.now(timezone.utc).isoformat()}
        stored = sink.upsert_scores(candidate_id, scores)
        if not stored.ok:
            logger.error("Score breakdown upsert failed for %s: %s", candidate_id, stored.error)
        return final_rank
    except LookupRetryExhausted as e:
        logger.error("DB lookup failed: %s", e)
        return 0
    except Exception:
        logger.exception("Critical ranking service error for %s", candidate_id)
        return 0
