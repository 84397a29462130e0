from __future__ import annotations
import random
from typing import Optional

from ..state import CandidateProfile, TrustSignal, VerificationResult

CHECK_WEIGHTS = {"employment": 40, "education": 40, "identity": 20}
CHECK_CONFIDENCE = {"employment": 0.85, "education": 0.90, "identity": 0.99}


class MockVerifier:
    """Stand-in for a background check provider.

    Employment and education match about 90% of the time; identity always
    matches. Pass a seed for repeatable results.
    """

    def __init__(self, seed: Optional[int] = None, match_rate: float = 0.9):
        self._rng = random.Random(seed)
        self.match_rate = match_rate

    def _check(self) -> str:
        return "MATCH" if self._rng.random() < self.match_rate else "NO_MATCH"

    def verify(self, profile: CandidateProfile) -> VerificationResult:
        results = {
            "employment": self._check() if profile.experience else "NO_MATCH",
            "education": self._check() if profile.education else "NO_MATCH",
            "identity": "MATCH",
        }
        signals = [
            TrustSignal(type=name, result=result, confidence=CHECK_CONFIDENCE[name])
            for name, result in results.items()
        ]
        trust = sum(CHECK_WEIGHTS[name] for name, result in results.items() if result == "MATCH")
        return VerificationResult(
            enabled=True,
            checks_attempted=list(results),
            trust_signals=signals,
            trust_score=trust,
        )
