from __future__ import annotations
import json
from typing import Any, Dict
from langchain_core.messages import SystemMessage, HumanMessage

from ..errors import FraudAnalysisDegraded
from ..utils import extract_json_block


AUDITOR_INSTRUCTIONS = (
    "You are an HR Security Auditor. Scan this resume JSON for evidence of FRAUD or FAKE data only.\n\n"
    "CRITICAL INSTRUCTIONS:\n"
    "- DO NOT flag missing fields (e.g., \"Location not provided\", \"No certifications\").\n"
    "- DO NOT flag generic contact info (e.g., Gmail, unverified phone numbers).\n"
    "- ONLY flag actual red flags: Lorem Ipsum text, placeholder strings like \"[Company Name]\", "
    "impossible date overlaps (e.g., working 2 full-time jobs for 5 years), or gibberish.\n\n"
    "Return ONLY a JSON object:\n"
    '{"ai_suspicion_score": number (0-50), "flag_reasons": ["string"]}'
)


class LLMSuspicionAnalyzer:
    """AI suspicion collaborator backed by a langchain chat model."""

    def __init__(self, llm: Any):
        self.llm = llm

    def analyze(self, profile_json: str) -> Dict[str, Any]:
        system = SystemMessage(content=AUDITOR_INSTRUCTIONS)
        human = HumanMessage(content="Profile Data:\n" + profile_json)
        resp = self.llm.invoke([system, human])
        content = resp if isinstance(resp, str) else getattr(resp, "content", "")
        raw_json = extract_json_block(str(content))
        try:
            data = json.loads(raw_json)
        except json.JSONDecodeError as e:
            raise FraudAnalysisDegraded(f"Suspicion response was not JSON: {e}") from e
        if not isinstance(data, dict):
            raise FraudAnalysisDegraded("Suspicion response was not a JSON object")
        return data
