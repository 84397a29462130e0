from __future__ import annotations
import logging
from typing import Dict, List, Tuple

from .memory_store import InMemoryStore

logger = logging.getLogger(__name__)

SUBJECTS: Dict[str, str] = {
    "shortlist": "Interview invitation",
    "reject": "Update on your application",
}


class LoggingNotifier:
    """Notifier that resolves the candidate's address and logs the email instead of sending it."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.sent: List[Tuple[str, str, str]] = []

    def send(self, candidate_id: str, kind: str) -> None:
        if kind not in SUBJECTS:
            raise ValueError(f"Unknown email type: {kind}")
        row = self.store.profiles.get(candidate_id) or {}
        profile = row.get("profile_json") or {}
        email = profile.get("email")
        if not email:
            raise LookupError(f"Email address missing for candidate: {candidate_id}")
        name = profile.get("name") or "Candidate"
        logger.info("Email [%s] to %s <%s>: %s", kind, name, email, SUBJECTS[kind])
        self.sent.append((candidate_id, kind, email))
