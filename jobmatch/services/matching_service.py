"""
Skill matching between extracted job keywords and a user profile
"""
import re
from typing import List, Dict, Optional, Iterable

from jobmatch.config import settings
from jobmatch.utils.logger import get_logger
from jobmatch.models.entities import (
    ExtractedKeyword,
    KeywordPriority,
    UserProfile,
    SkillMatchResult,
    ExperienceRelevance,
    AchievementAlignment,
)
from jobmatch.services.keyword_service import load_vocabulary, term_pattern

logger = get_logger(__name__)

MATCH_MODES = ("substring", "token")

MAX_EXPERIENCE_RELEVANCE = 90
MAX_TRANSFERABLE_SKILLS = 5
MAX_EXPERIENCE_GAPS = 3
ACHIEVEMENTS_PER_EXPERIENCE = 2
MIN_ACHIEVEMENT_LENGTH = 10

QUANTIFIED_RE = re.compile(r"\d+%|\$\d+|\d+x|\d+\+")


def normalize_skills(skills: Iterable[str]) -> List[str]:
    """Lower-case, strip and drop blank skills, keeping first occurrence order"""
    return list(dict.fromkeys(
        skill.strip().lower() for skill in skills if skill and skill.strip()
    ))


class SkillMatcher:
    """
    Partitions job keywords into matched and missing sets for a profile.

    substring mode keeps bidirectional containment between skills and keywords.
    token mode compares whole words and resolves aliases through the
    vocabulary synonym table, so "java" no longer matches "javascript".
    """

    def __init__(self, mode: str = "substring", synonyms: Optional[Dict[str, Iterable[str]]] = None):
        if mode not in MATCH_MODES:
            raise ValueError(f"Unknown match mode: {mode}")

        self.mode = mode
        self._canonical: Dict[str, str] = {}
        for canonical, aliases in (synonyms or {}).items():
            for alias in aliases:
                self._canonical[alias.lower()] = canonical.lower()

    def canonical(self, term: str) -> str:
        return self._canonical.get(term, term)

    def _aliases(self, term: str) -> List[str]:
        canonical = self.canonical(term)
        aliases = [alias for alias, target in self._canonical.items() if target == canonical]
        return list(dict.fromkeys([term, canonical] + aliases))

    def skill_matches(self, skill: str, keyword: str) -> bool:
        """Whether a single normalized user skill satisfies a keyword"""
        if self.mode == "substring":
            return skill in keyword or keyword in skill

        if self.canonical(skill) == self.canonical(keyword):
            return True
        return any(
            term_pattern(alias).search(skill) or term_pattern(skill).search(alias)
            for alias in self._aliases(keyword)
        )

    def text_contains(self, text: str, keyword: str) -> bool:
        """Whether free profile text (already lower-cased) mentions a keyword"""
        if not text:
            return False
        if self.mode == "substring":
            return keyword in text
        return any(term_pattern(alias).search(text) for alias in self._aliases(keyword))

    def match(self, keywords: List[ExtractedKeyword], profile: UserProfile) -> SkillMatchResult:
        """
        Match keywords against profile skills, then against profile free text.

        Args:
            keywords: Keywords extracted from the job posting
            profile: User profile (read only)

        Returns:
            SkillMatchResult where matched and missing partition the keyword terms
        """
        skills = normalize_skills(profile.skills)
        secondary_text = " ".join(
            part for part in (
                profile.work_history_text(),
                profile.education_text(),
                profile.certification_text(),
            ) if part
        ).lower()

        matched: List[str] = []
        missing: List[str] = []
        critical_missing: List[str] = []
        matched_via_skills: List[str] = []

        for keyword in keywords:
            term = keyword.term.lower()
            if term in matched or term in missing:
                continue

            if any(self.skill_matches(skill, term) for skill in skills):
                matched.append(term)
                matched_via_skills.append(term)
            elif self.text_contains(secondary_text, term):
                matched.append(term)
            else:
                missing.append(term)
                if keyword.priority == KeywordPriority.CRITICAL:
                    critical_missing.append(term)

        result = SkillMatchResult(
            matched=matched,
            missing=missing,
            critical_missing=critical_missing,
            matched_via_skills=matched_via_skills,
            experience_relevance=self.experience_relevance(keywords, profile),
            achievement_alignment=self.achievement_alignment(keywords, profile),
        )

        logger.debug(
            "skills_matched",
            mode=self.mode,
            keywords=len(keywords),
            matched=len(matched),
            missing=len(missing),
            critical_missing=len(critical_missing)
        )

        return result

    def experience_relevance(
        self,
        keywords: List[ExtractedKeyword],
        profile: UserProfile
    ) -> List[ExperienceRelevance]:
        """Per work entry keyword hits, relevance capped at 90, and critical gaps"""
        results = []
        terms = [keyword.term.lower() for keyword in keywords]
        critical_terms = [k.term.lower() for k in keywords if k.priority == KeywordPriority.CRITICAL]
        denominator = max(len(terms) * 0.3, 1)

        for exp in profile.work_experience:
            text = f"{exp.position} {exp.company} {exp.description}".lower()
            hits = [term for term in terms if self.text_contains(text, term)]
            score = min(MAX_EXPERIENCE_RELEVANCE, len(hits) / denominator * 100)

            results.append(ExperienceRelevance(
                experience=f"{exp.position} at {exp.company}",
                relevance_score=score,
                keyword_matches=hits,
                transferable_skills=hits[:MAX_TRANSFERABLE_SKILLS],
                gaps=[term for term in critical_terms if term not in hits][:MAX_EXPERIENCE_GAPS],
                optimization=(
                    "Emphasize this role prominently" if score > 70
                    else "Consider repositioning or adding context"
                )
            ))

        return results

    def achievement_alignment(
        self,
        keywords: List[ExtractedKeyword],
        profile: UserProfile
    ) -> List[AchievementAlignment]:
        """First two substantial description lines of every work entry"""
        terms = [keyword.term.lower() for keyword in keywords]
        alignments = []

        for exp in profile.work_experience:
            if not exp.description:
                continue
            lines = [line.strip() for line in exp.description.split("\n") if len(line.strip()) > MIN_ACHIEVEMENT_LENGTH]
            for line in lines[:ACHIEVEMENTS_PER_EXPERIENCE]:
                lowered = line.lower()
                alignments.append(AchievementAlignment(
                    achievement=line,
                    keyword_presence=[term for term in terms if self.text_contains(lowered, term)],
                    quantified=bool(QUANTIFIED_RE.search(line))
                ))

        return alignments


class MatchingService:
    """Builds matchers for the configured or requested match mode"""

    def __init__(self):
        self._matchers: Dict[str, SkillMatcher] = {}

    def get_matcher(self, mode: Optional[str] = None) -> SkillMatcher:
        mode = mode or settings.MATCH_MODE
        if mode not in self._matchers:
            synonyms = load_vocabulary().synonyms if mode == "token" else None
            self._matchers[mode] = SkillMatcher(mode=mode, synonyms=synonyms)
        return self._matchers[mode]

    def match_skills(
        self,
        keywords: List[ExtractedKeyword],
        profile: UserProfile,
        mode: Optional[str] = None
    ) -> SkillMatchResult:
        return self.get_matcher(mode).match(keywords, profile)


# Global service instance
matching_service = MatchingService()
