import pytest

from resume_pipeline.errors import StateTransitionError
from resume_pipeline.state import CandidateProfile, PipelineState, Status


def _state() -> PipelineState:
    return PipelineState(candidate_id="CAND-1", job_id="JOB-1")


def test_new_state_defaults():
    state = _state()
    assert state.status == Status.START
    assert state.errors == []
    assert state.final_rank == 0


def test_errors_accumulate_across_merges():
    state = _state()
    state.merge({"errors": ["first"]})
    state.merge({"errors": ["second", "third"]})
    state.merge({"errors": None})
    assert state.errors == ["first", "second", "third"]


def test_missing_update_keeps_previous_value():
    state = _state()
    profile = CandidateProfile(name="Jane")
    state.merge({"raw_text": "resume", "structured_profile": profile})
    state.merge({"raw_text": None, "structured_profile": None, "final_rank": 42})

    assert state.raw_text == "resume"
    assert state.structured_profile is profile
    assert state.final_rank == 42


def test_identifiers_are_immutable():
    state = _state()
    state.merge({"candidate_id": "CAND-1"})
    with pytest.raises(StateTransitionError):
        state.merge({"job_id": "JOB-2"})


def test_status_moves_forward_only():
    state = _state()
    state.merge({"status": Status.PARSED})
    state.merge({"status": "FRAUD_CHECKED"})
    with pytest.raises(StateTransitionError):
        state.merge({"status": Status.PARSED})


def test_failed_reachable_from_any_non_terminal_state_and_is_final():
    state = _state()
    state.merge({"status": Status.PARSED})
    state.merge({"status": Status.FAILED})
    assert state.failed
    with pytest.raises(StateTransitionError):
        state.merge({"status": Status.DONE})


def test_done_is_terminal():
    state = _state()
    state.merge({"status": Status.DONE})
    state.merge({"status": Status.DONE})
    with pytest.raises(StateTransitionError):
        state.merge({"status": Status.FAILED})


def test_unknown_field_rejected():
    with pytest.raises(KeyError):
        _state().merge({"fraudScore": 10})


def test_profile_accepts_camel_case_json():
    profile = CandidateProfile.model_validate({
        "email": "a@b.co",
        "experience": [{"company": "Acme", "startDate": "2020-01", "endDate": "Present"}],
        "links": {"github": "https://github.com/a"},
    })
    assert profile.experience[0].start_date == "2020-01"
    assert profile.model_dump(by_alias=True)["experience"][0]["endDate"] == "Present"
