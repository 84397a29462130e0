"""End-to-end pipeline runs against the in-memory store and fake collaborators."""

from resume_pipeline.agents.verifier import MockVerifier
from resume_pipeline.errors import ParseFailure
from resume_pipeline.graph.workflow import is_successful, run_pipeline, settle_writes
from resume_pipeline.state import DUPLICATE_FLAG, CandidateProfile, Status
from resume_pipeline.tools.base import WriteResult

from conftest import CountingStore, CountingVerifier, FakeSuspicion


class ExplodingParser:
    def __init__(self):
        self.calls = 0

    def parse(self, candidate_id, job_id):
        self.calls += 1
        raise ParseFailure("Failed to download resume file.")


def test_happy_path(store, make_deps, settings):
    state = run_pipeline("CAND-1", "JOB-1", make_deps(), settings=settings)

    assert state.status == Status.DONE
    assert state.errors == []
    assert is_successful(state)
    assert state.evaluation.overall_score == 100
    # 100 - 0 + 10 (high priority from the store), clamped
    assert state.final_rank == 100
    assert state.verification_result.enabled is False
    assert [o.status for o in state.persistence] == ["ok", "ok", "ok"]

    assert store.candidates["CAND-1"]["priority_score"] == 100
    assert store.candidates["CAND-1"]["status"] == "PROCESSED"
    assert store.profiles["CAND-1"]["profile_json"]["email"] == "jane.doe@example.com"
    assert store.scores["CAND-1"]["scores_json"]["explainability"] == state.evaluation.explainability
    assert [row["step"] for row in store.audit_trail("CAND-1")] == ["FRAUD_CHECK", "SCORING_COMPLETE"]


def test_parse_failure_halts_run(store, make_deps, settings):
    parser = ExplodingParser()
    suspicion = FakeSuspicion()
    verifier = CountingVerifier()
    deps = make_deps(parser=parser, suspicion=suspicion, verifier=verifier)

    state = run_pipeline("CAND-1", "JOB-1", deps, verification_enabled=True, settings=settings)

    assert state.status == Status.FAILED
    assert state.errors == ["Parsing Failed: Failed to download resume file."]
    assert parser.calls == 1
    assert store.calls.get("find_duplicates", 0) == 0
    assert suspicion.payloads == []
    assert verifier.calls == 0
    assert store.calls.get("get_job", 0) == 0
    assert store.calls.get("upsert_scores", 0) == 0
    assert state.verification_result is None


def test_duplicate_application_is_capped(store, make_deps, profile, settings):
    store.add_candidate("CAND-0", "JOB-1", priority="high")
    store.save_profile("CAND-0", "earlier upload", profile)

    state = run_pipeline("CAND-1", "JOB-1", make_deps(), settings=settings)

    assert state.status == Status.DONE
    assert DUPLICATE_FLAG in state.fraud_result.flags
    assert state.fraud_result.fraud_score == 85
    assert state.final_rank == 15
    audit = store.audit_trail("CAND-1")
    assert audit[0]["status"] == "WARNING"
    assert audit[-1]["status"] == "FRAUD_ALERT"
    assert store.risk["CAND-1"]["risk_json"]["duplicateDetected"] is True


def test_fanout_failures_do_not_fail_run(make_deps, settings):
    class FlakySink(CountingStore):
        def update_candidate_rank(self, candidate_id, rank, status):
            raise ConnectionError("connection reset")

        def upsert_scores(self, candidate_id, scores):
            return WriteResult(ok=False, error="violates check constraint")

    sink = FlakySink()
    state = run_pipeline("CAND-1", "JOB-1", make_deps(sink=sink), settings=settings)

    assert state.status == Status.DONE
    assert state.errors == []
    assert [(o.name, o.status) for o in state.persistence] == [
        ("update_candidate_rank", "rejected"),
        ("upsert_scores", "error"),
        ("append_audit", "ok"),
    ]
    assert [row["step"] for row in sink.audit_log] == ["FRAUD_CHECK", "SCORING_COMPLETE"]


def test_missing_job_fails_scoring(store, make_deps, settings):
    store.jobs.clear()
    state = run_pipeline("CAND-1", "JOB-1", make_deps(), settings=settings)

    assert state.status == Status.FAILED
    assert state.errors == ["Target Job ID not found for scoring."]
    assert state.fraud_result is not None
    assert state.evaluation is None
    assert store.calls.get("update_candidate_rank", 0) == 0


def test_fraud_stage_failure_stops_before_verification(make_deps, settings, monkeypatch):
    def broken_assessment(*args, **kwargs):
        raise TimeoutError("fraud engine unavailable")

    monkeypatch.setattr("resume_pipeline.graph.workflow.assess_fraud", broken_assessment)
    verifier = CountingVerifier()
    deps = make_deps(verifier=verifier)
    state = run_pipeline("CAND-1", "JOB-1", deps, verification_enabled=True, settings=settings)

    assert state.status == Status.FAILED
    assert state.errors == ["fraud engine unavailable"]
    assert state.structured_profile is not None
    assert verifier.calls == 0
    assert state.evaluation is None


def test_rejected_risk_write_does_not_fail_run(make_deps, settings):
    class RejectingRiskSink(CountingStore):
        def upsert_risk(self, candidate_id, record):
            return WriteResult(ok=False, error="duplicate key value")

        def append_audit(self, candidate_id, step, status, details):
            if step == "FRAUD_CHECK":
                raise TimeoutError("audit table unavailable")
            return super().append_audit(candidate_id, step, status, details)

    sink = RejectingRiskSink()
    state = run_pipeline("CAND-1", "JOB-1", make_deps(sink=sink), settings=settings)

    assert state.status == Status.DONE
    assert state.errors == []
    assert state.fraud_result is not None
    assert sink.risk == {}
    assert [row["step"] for row in sink.audit_log] == ["SCORING_COMPLETE"]


def test_rejected_profile_save_does_not_fail_run(make_deps, settings):
    class RejectingProfileStore(CountingStore):
        def save_profile(self, candidate_id, raw_text, profile):
            return WriteResult(ok=False, error="row not found")

    state = run_pipeline("CAND-1", "JOB-1", make_deps(profiles=RejectingProfileStore()), settings=settings)

    assert state.status == Status.DONE
    assert state.errors == []
    assert state.evaluation is not None
    assert is_successful(state)


def test_missing_profile_fails_scoring(make_deps, settings):
    class EmptyParser:
        def parse(self, candidate_id, job_id):
            from resume_pipeline.tools.base import ParsedResume
            return ParsedResume.model_construct(raw_text="", structured_profile=None)

    class NoSaveStore(CountingStore):
        def save_profile(self, candidate_id, raw_text, profile):
            return WriteResult()

    deps = make_deps(parser=EmptyParser(), profiles=NoSaveStore())
    state = run_pipeline("CAND-1", "JOB-1", deps, settings=settings)

    assert state.status == Status.FAILED
    assert state.errors == ["No structured profile available for scoring."]


def test_verification_enabled(make_deps, settings):
    state = run_pipeline("CAND-1", "JOB-1", make_deps(verifier=MockVerifier(seed=7)),
                         verification_enabled=True, settings=settings)
    result = state.verification_result
    assert result.enabled is True
    assert result.checks_attempted == ["employment", "education", "identity"]
    assert result.trust_score in (20, 60, 100)
    assert state.status == Status.DONE


def test_verification_errors_never_fail_run(make_deps, settings):
    deps = make_deps(verifier=CountingVerifier(error=RuntimeError("provider down")))
    state = run_pipeline("CAND-1", "JOB-1", deps, verification_enabled=True, settings=settings)
    assert state.status == Status.DONE
    assert state.errors == []
    assert state.verification_result.enabled is True
    assert state.verification_result.trust_score == 0


def test_explicit_priority_overrides_store(make_deps, settings):
    state = run_pipeline("CAND-1", "JOB-1", make_deps(), priority="low", settings=settings)
    assert state.priority.value == "low"


def test_ai_suspicion_feeds_rank(store, make_deps, settings):
    suspicion = FakeSuspicion({"ai_suspicion_score": 40, "flag_reasons": ["Lorem ipsum text"]})
    state = run_pipeline("CAND-1", "JOB-1", make_deps(suspicion=suspicion), priority="low", settings=settings)

    assert state.fraud_result.fraud_score == 40
    # 100 - round(40 * 0.35) + 0
    assert state.final_rank == 86


def test_settle_writes_runs_every_write():
    seen = []

    def ok():
        seen.append("ok")
        return WriteResult()

    def boom():
        raise RuntimeError("boom")

    outcomes = settle_writes([("a", boom), ("b", ok), ("c", ok)])
    assert [o.status for o in outcomes] == ["rejected", "ok", "ok"]
    assert outcomes[0].message == "boom"
    assert seen == ["ok", "ok"]


def test_done_with_errors_is_not_success():
    from resume_pipeline.state import PipelineState
    state = PipelineState(candidate_id="C", job_id="J", structured_profile=CandidateProfile())
    state.merge({"status": Status.DONE, "errors": ["late warning"]})
    assert not is_successful(state)
