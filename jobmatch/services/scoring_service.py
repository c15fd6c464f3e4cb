"""
Match score calculation, category breakdown and recommendations
"""
import math
from typing import List, Optional, Tuple

from jobmatch.utils.logger import get_logger
from jobmatch.models.entities import (
    ExtractedKeyword,
    KeywordPriority,
    UserProfile,
    SkillMatchResult,
    ScoreBreakdown,
    ScoreSource,
    CriticalIssue,
)
from jobmatch.services.scoring_client import ScoringClient, scoring_client
from jobmatch.core.exceptions import ScoringServiceError

logger = get_logger(__name__)

RATIO_WEIGHT = 85
WORK_EXPERIENCE_BONUS = 5
EDUCATION_BONUS = 3
CERTIFICATION_BONUS = 2
MAX_MATCH_SCORE = 95

MAX_REMOTE_SCORE = 50
RICH_HISTORY_SCORE = 25
SPARSE_HISTORY_SCORE = 15
RICH_HISTORY_MIN_CHARS = 200

# Category weights of the composite score
KEYWORD_WEIGHT = 0.4
CONTENT_WEIGHT = 0.3
STRUCTURE_WEIGHT = 0.2
EXPERIENCE_WEIGHT = 0.1

NEUTRAL_SUB_SCORE = 50
CONTENT_BASELINE = 30
COMPLETE_STRUCTURE_SCORE = 85
INCOMPLETE_STRUCTURE_SCORE = 60


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores"""
    return int(math.floor(value + 0.5))


def flatten_profile(profile: UserProfile) -> str:
    """Plain-text résumé used as the remote scoring payload"""
    sections = []
    if profile.personal_info.professional_summary:
        sections.append(profile.personal_info.professional_summary)
    if profile.skills:
        sections.append("Skills: " + ", ".join(s for s in profile.skills if s and s.strip()))
    for exp in profile.work_experience:
        sections.append(f"{exp.position} at {exp.company}\n{exp.description}".strip())
    education = profile.education_text()
    if education:
        sections.append(education)
    certifications = profile.certification_text()
    if certifications:
        sections.append(certifications)
    return "\n\n".join(sections)


class ScoreCalculator:
    """Computes the overall match score and its category breakdown"""

    def __init__(self, client: Optional[ScoringClient] = None):
        self.client = client or scoring_client

    async def calculate_match_score(
        self,
        match: SkillMatchResult,
        keyword_count: int,
        profile: UserProfile,
        job_description: str
    ) -> Tuple[int, ScoreSource]:
        """
        Score a profile against the extracted keywords.

        With at least one match the score is the keyword ratio scaled to 85
        plus profile completeness bonuses, capped at 95. With no matches the
        remote estimate is used (capped at 50) and, failing that, a
        work-history length heuristic. Never raises.

        Returns:
            Tuple of (score, score_source)
        """
        matches = len(match.matched)

        if matches > 0 and keyword_count > 0:
            score = round_half_up(matches / keyword_count * RATIO_WEIGHT)
            if profile.work_experience:
                score += WORK_EXPERIENCE_BONUS
            if profile.education:
                score += EDUCATION_BONUS
            if profile.certifications:
                score += CERTIFICATION_BONUS
            return min(score, MAX_MATCH_SCORE), ScoreSource.KEYWORD_RATIO

        if job_description and job_description.strip():
            try:
                remote = await self.client.score(job_description, flatten_profile(profile))
                score = max(0, min(MAX_REMOTE_SCORE, round_half_up(remote.overall_score)))
                return score, ScoreSource.REMOTE_ESTIMATE
            except ScoringServiceError as e:
                logger.warning(
                    "remote_score_fallback",
                    error_code=e.error_code,
                    error=e.message
                )

        history_length = len(profile.work_history_text())
        score = RICH_HISTORY_SCORE if history_length > RICH_HISTORY_MIN_CHARS else SPARSE_HISTORY_SCORE
        return score, ScoreSource.LENGTH_HEURISTIC

    def calculate_breakdown(
        self,
        keywords: List[ExtractedKeyword],
        match: SkillMatchResult,
        profile: UserProfile
    ) -> ScoreBreakdown:
        """Four category sub-scores combined by a 40/30/20/10 weighted average"""
        critical_terms = [k.term.lower() for k in keywords if k.priority == KeywordPriority.CRITICAL]
        if critical_terms:
            matched_critical = [term for term in critical_terms if term in match.matched]
            keyword_score = len(matched_critical) / len(critical_terms) * 100
        elif keywords:
            keyword_score = len(match.matched) / len(keywords) * 100
        else:
            keyword_score = NEUTRAL_SUB_SCORE

        achievements = match.achievement_alignment
        quantified = sum(1 for a in achievements if a.quantified)
        content_score = min(100, quantified / max(len(achievements), 1) * 100 + CONTENT_BASELINE)

        info = profile.personal_info
        if info.name and info.email and profile.work_experience:
            structure_score = COMPLETE_STRUCTURE_SCORE
        else:
            structure_score = INCOMPLETE_STRUCTURE_SCORE

        relevance = match.experience_relevance
        if relevance:
            experience_score = sum(r.relevance_score for r in relevance) / len(relevance)
        else:
            experience_score = NEUTRAL_SUB_SCORE

        overall = round_half_up(
            keyword_score * KEYWORD_WEIGHT
            + content_score * CONTENT_WEIGHT
            + structure_score * STRUCTURE_WEIGHT
            + experience_score * EXPERIENCE_WEIGHT
        )

        return ScoreBreakdown(
            overall=overall,
            keyword=round_half_up(keyword_score),
            content=round_half_up(content_score),
            structure=structure_score,
            experience=round_half_up(experience_score),
        )

    @staticmethod
    def identify_critical_issues(breakdown: ScoreBreakdown) -> List[CriticalIssue]:
        issues = []
        if breakdown.keyword < 50:
            issues.append(CriticalIssue(
                issue="Low keyword match rate",
                impact="-30 ATS points",
                priority="high",
                solution="Integrate missing critical keywords naturally into experience descriptions"
            ))
        if breakdown.content < 60:
            issues.append(CriticalIssue(
                issue="Insufficient quantified achievements",
                impact="-20 ATS points",
                priority="high",
                solution="Add specific metrics, percentages, and measurable outcomes"
            ))
        return issues

    @staticmethod
    def build_recommendations(keywords: List[ExtractedKeyword], match: SkillMatchResult) -> List[str]:
        recommendations = []
        if match.matched:
            recommendations.append(
                f"Emphasize {' and '.join(match.matched[:2])} prominently in your resume summary"
            )
        recommendations.append(
            f"Use specific metrics when describing your {match.matched[0] if match.matched else 'experience'} achievements"
        )
        if match.missing:
            recommendations.append(
                f"Consider highlighting any experience with {match.missing[0]} or related technologies"
            )
        else:
            recommendations.append("Your skills align well with this role")
        first_term = keywords[0].term if keywords else "relevant keywords"
        recommendations.append(f"Mirror the job's language - use \"{first_term}\" instead of synonyms")
        recommendations.append("Quantify your achievements with specific numbers and percentages")
        return recommendations


# Global service instance
score_calculator = ScoreCalculator()
