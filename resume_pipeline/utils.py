from __future__ import annotations
import math
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

PRESENT = "present"

_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m", "%Y/%m/%d", "%Y/%m", "%m/%Y", "%b %Y", "%B %Y", "%Y")


def read_text_file(path: str) -> str:
    p = Path(path)
    return p.read_text(encoding="utf-8")

def pdf_to_text(path: str) -> Optional[str]:
    try:
        from pypdf import PdfReader
        reader = PdfReader(path)
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(pages).strip()
    except Exception:
        return None

def load_resume(path: str) -> str:
    path_lower = path.lower()
    if path_lower.endswith(".txt") or path_lower.endswith(".md"):
        return read_text_file(path)
    if path_lower.endswith(".pdf"):
        txt = pdf_to_text(path)
        if txt:
            return txt
        raise RuntimeError("Could not extract text from PDF. Make sure pypdf is installed and the file is not encrypted.")
    raise ValueError("Unsupported resume format. Use .txt, .md or .pdf")


def extract_json_block(text: str) -> str:
    """Extract JSON from an LLM response, handling code fences and finding the first {...} block."""
    t = text.strip()
    t = re.sub(r"^```[a-zA-Z]*\n|```$", "", t, flags=re.MULTILINE)
    m = re.search(r"\{[\s\S]*\}", t)
    if m:
        return t[m.start():m.end()]
    return t


def round_half_up(value: float) -> int:
    """Round to nearest integer with .5 going up, like JavaScript's Math.round."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def is_present(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() == PRESENT


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse the loose date strings resumes carry ("2021-09", "Sep 2021", "2020").

    Returns None for anything unparseable, including the "Present" sentinel.
    """
    if not value:
        return None
    raw = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(raw).replace(tzinfo=None)
    except ValueError:
        return None


def resolve_end_date(value: Optional[str], now: datetime) -> Optional[datetime]:
    """End of a role: "Present" or missing means still employed (now)."""
    if not value or is_present(value):
        return now
    return parse_date(value)


def truncate_utf8(text: str, budget: int) -> str:
    return text.encode("utf-8")[:budget].decode("utf-8", errors="ignore")
