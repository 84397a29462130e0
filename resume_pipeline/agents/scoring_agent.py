from __future__ import annotations
import json
import logging
import re
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from ..state import CandidateProfile, JobRequirement, ScoreBreakdown
from ..utils import parse_date, resolve_end_date, round_half_up

logger = logging.getLogger(__name__)

# Weights in percent so the weighted sum stays exact before rounding
SKILL_WEIGHT = 50
EXPERIENCE_WEIGHT = 35
EDUCATION_WEIGHT = 15

GOOD_TO_HAVE_BONUS = 15
DAYS_PER_YEAR = 365.25

# Credential levels recognised anywhere in the education entries
DEGREE_KEYWORDS = (
    "bachelor", "master", "b.tech", "b.sc", "m.sc", "phd", "doctor",
    "degree", "diploma", "mca", "bca", "mba",
)


def normalize_skill(skill: str) -> str:
    if not skill:
        return ""
    return re.sub(r"[^a-z0-9]", "", str(skill).lower())


def score_skills(candidate_skills: Iterable[str], job: JobRequirement) -> Tuple[float, List[str]]:
    have = {normalize_skill(s) for s in candidate_skills if s}
    bullets: List[str] = []

    must_have = job.must_have_skills
    if must_have:
        matched = [s for s in must_have if normalize_skill(s) in have]
        score = len(matched) / len(must_have) * 100
        bullets.append(f"Matched {len(matched)} out of {len(must_have)} mandatory skills.")
        if len(matched) < len(must_have):
            missing = [s for s in must_have if normalize_skill(s) not in have]
            bullets.append(f"Missing critical domain skills: {', '.join(missing)}.")
    else:
        score = 100.0
        bullets.append("No mandatory skills specified; full skill credit applied.")

    bonus = [s for s in job.good_to_have_skills if normalize_skill(s) in have]
    if bonus:
        score = min(100.0, score + GOOD_TO_HAVE_BONUS)
        bullets.append(f"Awarded bonus for {len(bonus)} preferred technical skills.")
    return score, bullets


def total_experience_years(profile: CandidateProfile, now: Optional[datetime] = None) -> float:
    now = now or datetime.now()
    total = 0.0
    for role in profile.experience:
        start = parse_date(role.start_date)
        if start is None:
            continue
        end = resolve_end_date(role.end_date, now)
        if end is None:
            continue
        years = (end - start).days / DAYS_PER_YEAR
        if years > 0:
            total += years
    return total


def score_experience(years: float, min_years: float) -> Tuple[float, List[str]]:
    if years >= min_years:
        return 100.0, [f"Professional tenure ({years:.1f} years) satisfies role seniority."]
    score = years / min_years * 100 if min_years > 0 else 100.0
    return score, [f"Tenure of {years:.1f} years is currently below the preferred {min_years:g} years."]


def score_education(profile: CandidateProfile) -> Tuple[float, List[str]]:
    # Values only: key names like "degree" must not count as a credential.
    values = [v for e in profile.education for v in e.model_dump().values() if v]
    text = json.dumps(values).lower()
    if any(keyword in text for keyword in DEGREE_KEYWORDS):
        return 100.0, ["Academic background aligns with required qualifications."]
    return 50.0, ["Alternative academic background detected; applying partial credit."]


def score_candidate(
    profile: CandidateProfile,
    job: JobRequirement,
    now: Optional[datetime] = None,
) -> ScoreBreakdown:
    """Weighted 50/35/15 fit score with explainability bullets.

    Bullets come out in skill, experience, education order. Sub-scores are
    rounded before weighting so the overall score is reproducible from the
    stored sub-scores.
    """
    skill_raw, skill_bullets = score_skills(profile.skills, job)
    years = total_experience_years(profile, now)
    exp_raw, exp_bullets = score_experience(years, job.min_exp_years)
    edu_raw, edu_bullets = score_education(profile)

    skill = round_half_up(skill_raw)
    experience = round_half_up(exp_raw)
    education = round_half_up(edu_raw)
    overall = round_half_up(
        (skill * SKILL_WEIGHT + experience * EXPERIENCE_WEIGHT + education * EDUCATION_WEIGHT) / 100
    )

    breakdown = ScoreBreakdown(
        skill_match_score=skill,
        experience_relevance_score=experience,
        education_fit_score=education,
        overall_score=overall,
        explainability=skill_bullets + exp_bullets + edu_bullets,
    )
    logger.debug(
        "Scored candidate: skill=%s experience=%s education=%s overall=%s",
        skill, experience, education, overall,
    )
    return breakdown
