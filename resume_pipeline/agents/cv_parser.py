from __future__ import annotations
from typing import Any, Dict, Mapping
import json
import logging
from langchain_core.messages import SystemMessage, HumanMessage

from ..errors import ParseFailure
from ..state import CandidateProfile
from ..tools.base import ParsedResume
from ..utils import extract_json_block, load_resume

logger = logging.getLogger(__name__)

MAX_RESUME_CHARS = 20000

PROFILE_SCHEMA = (
    '{"name": str, "email": str, "phone": str|null, "location": str|null, '
    '"skills": string[], '
    '"experience": [{"company": str|null, "title": str|null, "startDate": "YYYY-MM"|null, '
    '"endDate": "YYYY-MM"|"Present"|null, "highlights": string[]}], '
    '"education": [{"degree": str|null, "institution": str|null, "year": str|null}], '
    '"certifications": string[], '
    '"links": {"linkedin": str|null, "github": str|null, "portfolio": str|null}|null}'
)


def parse_profile_llm(text: str, llm: Any) -> CandidateProfile:
    """Turn resume text into a CandidateProfile using strict JSON-only LLM output."""
    system = SystemMessage(content=(
        "You are an expert HR AI. Extract structured data from resumes into a strict JSON schema. "
        "Refine the skills list to be concise. Format dates as YYYY-MM. "
        "Output ONLY JSON. No commentary, no markdown."
    ))
    human = HumanMessage(content=(
        "Resume text:\n" + text[:MAX_RESUME_CHARS] + "\n\nSchema (JSON) you must return exactly:\n" + PROFILE_SCHEMA
    ))
    resp = llm.invoke([system, human])
    content = getattr(resp, "content", "")
    raw_json = extract_json_block(str(content))
    try:
        data = json.loads(raw_json)
        return CandidateProfile.model_validate(data)
    except Exception as e:
        raise ParseFailure(f"AI generation mismatch: {e}") from e


class LLMResumeParser:
    """Parse collaborator that reads resume files and extracts a profile with an LLM."""

    def __init__(self, llm: Any, resume_paths: Mapping[str, str]):
        self.llm = llm
        self.resume_paths = dict(resume_paths)

    def parse(self, candidate_id: str, job_id: str) -> ParsedResume:
        path = self.resume_paths.get(candidate_id)
        if not path:
            raise ParseFailure("Candidate not found.")
        raw_text = load_resume(path)
        if not raw_text.strip():
            raise ParseFailure("Resume is empty.")
        profile = parse_profile_llm(raw_text, self.llm)
        logger.info("Parsed resume for %s (%s fields)", candidate_id, len(profile.model_fields_set))
        return ParsedResume(raw_text=raw_text, structured_profile=profile)


class StaticResumeParser:
    """Parse collaborator for profiles that were already extracted upstream."""

    def __init__(self, profiles: Mapping[str, CandidateProfile], raw_texts: Mapping[str, str] | None = None):
        self.profiles = dict(profiles)
        self.raw_texts: Dict[str, str] = dict(raw_texts or {})

    def parse(self, candidate_id: str, job_id: str) -> ParsedResume:
        profile = self.profiles.get(candidate_id)
        if profile is None:
            raise ParseFailure(f"No extracted profile for candidate {candidate_id}")
        raw_text = self.raw_texts.get(candidate_id) or json.dumps(profile.model_dump(by_alias=True))
        return ParsedResume(raw_text=raw_text, structured_profile=profile)
