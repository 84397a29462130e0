"""Candidate evaluation pipeline: parse -> fraud -> verification -> scoring.

Each stage reads the state and returns a partial update; the runner merges
it and stops as soon as the status is FAILED. The scoring stage fans its
three persistence writes out concurrently and waits for all of them; their
failures are logged, never fatal.
"""

from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..agents.fraud_detector import assess_fraud
from ..agents.ranking import consolidate_rank
from ..agents.scoring_agent import score_candidate
from ..config import Settings, get_settings
from ..errors import PersistenceWriteFailure
from ..state import (
    FraudAssessment,
    PipelineState,
    PriorityTier,
    Status,
    VerificationResult,
    WriteOutcome,
)
from ..tools.base import (
    DuplicateLookup,
    JobStore,
    PersistenceSink,
    PriorityTierSource,
    ProfileStore,
    ResumeParser,
    SuspicionAnalyzer,
    Verifier,
    WriteResult,
)

logger = logging.getLogger(__name__)

Update = Dict[str, Any]


@dataclass
class PipelineDeps:
    """Collaborators one pipeline instance talks to."""

    parser: ResumeParser
    profiles: ProfileStore
    duplicates: DuplicateLookup
    jobs: JobStore
    sink: PersistenceSink
    priorities: PriorityTierSource
    suspicion: Optional[SuspicionAnalyzer] = None
    verifier: Optional[Verifier] = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def record_write(name: str, write: Callable[[], WriteResult]) -> WriteOutcome:
    """Run one persistence write and log how it went; never raises.

    A write that returns ok=False is a data-level "error"; one that raises is
    a transport-level "rejected".
    """
    try:
        result = write()
    except Exception as exc:
        failure = PersistenceWriteFailure(name, str(exc))
        logger.error("DB sync task %s failed (network/code): %s", name, failure)
        return WriteOutcome(name=name, status="rejected", message=str(exc))
    if result is not None and not result.ok:
        logger.error("Store error in task %s: %s (details: %s)", name, result.error, result.details)
        return WriteOutcome(name=name, status="error", message=result.error)
    logger.info("DB sync task %s successful", name)
    return WriteOutcome(name=name, status="ok")


def settle_writes(writes: List[Tuple[str, Callable[[], WriteResult]]], max_workers: int = 3) -> List[WriteOutcome]:
    """Run writes concurrently and report each one's outcome, in submission order.

    No failure cancels the others.
    """
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pipeline-sync") as pool:
        futures = [pool.submit(record_write, name, fn) for name, fn in writes]
        wait(futures)
    return [future.result() for future in futures]


def build_graph(deps: PipelineDeps, settings: Optional[Settings] = None) -> Callable[[PipelineState], PipelineState]:
    settings = settings or get_settings()

    def parse_node(state: PipelineState) -> Update:
        logger.info("Step 1: parsing resume for %s", state.candidate_id)
        try:
            parsed = deps.parser.parse(state.candidate_id, state.job_id)
        except Exception as e:
            logger.error("Parsing node error: %s", e)
            return {"errors": [f"Parsing Failed: {e}"], "status": Status.FAILED}

        record_write(
            "save_profile",
            lambda: deps.profiles.save_profile(state.candidate_id, parsed.raw_text, parsed.structured_profile),
        )
        return {
            "raw_text": parsed.raw_text,
            "structured_profile": parsed.structured_profile,
            "status": Status.PARSED,
        }

    def fraud_node(state: PipelineState) -> Update:
        logger.info("Step 2: running fraud detection for %s", state.candidate_id)
        try:
            result = assess_fraud(
                state.structured_profile,
                state.raw_text,
                state.candidate_id,
                state.job_id,
                duplicates=deps.duplicates,
                suspicion=deps.suspicion,
                payload_budget=settings.SUSPICION_PAYLOAD_BYTES,
            )
        except Exception as e:
            logger.error("Fraud node error: %s", e)
            return {"errors": [str(e)], "status": Status.FAILED}

        risk_json = {**result.details, "duplicateDetected": result.duplicate_detected, "timestamp": _now_iso()}
        record_write("upsert_risk", lambda: deps.sink.upsert_risk(state.candidate_id, {
            "fraud_score": result.fraud_score,
            "flags": list(result.flags),
            "risk_json": risk_json,
        }))
        audit_status = "WARNING" if result.fraud_score > settings.FRAUD_WARNING_THRESHOLD else "OK"
        record_write(
            "append_audit",
            lambda: deps.sink.append_audit(state.candidate_id, "FRAUD_CHECK", audit_status, risk_json),
        )
        return {"fraud_result": result, "status": Status.FRAUD_CHECKED}

    def verification_node(state: PipelineState) -> Update:
        logger.info("Step 3: verifying data for %s", state.candidate_id)
        if not state.verification_enabled or deps.verifier is None:
            return {"verification_result": VerificationResult.disabled()}
        try:
            return {"verification_result": deps.verifier.verify(state.structured_profile)}
        except Exception as e:
            logger.warning("Verification unavailable for %s: %s", state.candidate_id, e)
            return {"verification_result": VerificationResult(enabled=True)}

    def scoring_node(state: PipelineState) -> Update:
        if state.structured_profile is None:
            return {"errors": ["No structured profile available for scoring."], "status": Status.FAILED}
        logger.info("Step 4: finalizing scoring and ranking for %s", state.candidate_id)
        try:
            job = deps.jobs.get_job(state.job_id)
            breakdown = score_candidate(state.structured_profile, job)

            fraud = state.fraud_result or FraudAssessment()
            duplicate = fraud.duplicate_detected
            priority = state.priority or deps.priorities.get_priority(state.candidate_id) or PriorityTier.LOW
            final_rank = consolidate_rank(breakdown.overall_score, fraud.fraud_score, priority, duplicate)
            if duplicate:
                logger.warning("Duplicate detected: hard capping rank to %s for %s", final_rank, state.candidate_id)
        except Exception as e:
            logger.error("Critical error in scoring node: %s", e)
            return {"errors": [str(e)], "status": Status.FAILED}

        scores_json = {
            **breakdown.model_dump(by_alias=True),
            "finalRankScore": final_rank,
            "fraudPenaltyApplied": duplicate,
        }
        audit_details = {"finalScore": final_rank, "isDuplicate": duplicate, "timestamp": _now_iso()}
        cid = state.candidate_id
        outcomes = settle_writes([
            ("update_candidate_rank", lambda: deps.sink.update_candidate_rank(cid, final_rank, "PROCESSED")),
            ("upsert_scores", lambda: deps.sink.upsert_scores(cid, scores_json)),
            ("append_audit", lambda: deps.sink.append_audit(
                cid, "SCORING_COMPLETE", "FRAUD_ALERT" if duplicate else "SUCCESS", audit_details)),
        ], max_workers=settings.FANOUT_WORKERS)

        return {
            "priority": PriorityTier.coerce(priority),
            "final_rank": final_rank,
            "evaluation": breakdown,
            "persistence": outcomes,
            "status": Status.DONE,
        }

    stages = [
        ("parser", parse_node),
        ("fraud_detector", fraud_node),
        ("verifier", verification_node),
        ("scorer", scoring_node),
    ]

    def runner(state: PipelineState) -> PipelineState:
        for name, node in stages:
            state.merge(node(state))
            if state.failed:
                logger.warning("Pipeline halted after %s for %s: %s", name, state.candidate_id, state.errors)
                break
        return state

    return runner


def run_pipeline(
    candidate_id: str,
    job_id: str,
    deps: PipelineDeps,
    *,
    priority: Any = None,
    verification_enabled: Optional[bool] = None,
    settings: Optional[Settings] = None,
) -> PipelineState:
    settings = settings or get_settings()
    if verification_enabled is None:
        verification_enabled = settings.VERIFICATION_ENABLED
    state = PipelineState(
        candidate_id=candidate_id,
        job_id=job_id,
        priority=PriorityTier.coerce(priority) if priority else None,
        verification_enabled=verification_enabled,
    )
    logger.info("Starting pipeline for %s (job %s)", candidate_id, job_id)
    return build_graph(deps, settings)(state)


def is_successful(state: PipelineState) -> bool:
    """The only success signal: DONE with no collected errors."""
    return state.status == Status.DONE and not state.errors
