"""
Analysis pipeline orchestration.

Runs Extractor -> Matcher -> Score Calculator -> Content Generator for one
(job posting, profile) pair, then persists the result unless a newer analysis
for the same user was issued while this one was in flight.
"""
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from jobmatch.utils.logger import get_logger
from jobmatch.utils.metrics import MetricsCollector, StageTimer, metrics_collector
from jobmatch.models.entities import (
    AnalysisRecord,
    ExtractedKeyword,
    GeneratedResumeContent,
    JobPosting,
    MatchResult,
    RoleIntelligence,
    UserProfile,
)
from jobmatch.services.keyword_service import KeywordService, keyword_service
from jobmatch.services.matching_service import MatchingService, matching_service
from jobmatch.services.scoring_service import ScoreCalculator, score_calculator
from jobmatch.services.content_service import ContentGenerator, content_generator
from jobmatch.services.database_service import DatabaseService, db_service
from jobmatch.core.exceptions import PersistenceError, ValidationError

logger = get_logger(__name__)


class GenerationTracker:
    """
    Issues monotonically increasing generation numbers per user.

    A pipeline run remembers the generation it was issued; when it completes
    it is current only if no later generation was issued for that user.
    A user is forgotten once none of their runs is in flight, so numbering
    restarts at 1 for the next run.
    """

    def __init__(self):
        self._latest: Dict[str, int] = {}
        self._in_flight: Dict[str, int] = {}

    def issue(self, user_id: str) -> int:
        generation = self._latest.get(user_id, 0) + 1
        self._latest[user_id] = generation
        self._in_flight[user_id] = self._in_flight.get(user_id, 0) + 1
        return generation

    def finish(self, user_id: str):
        """Release one in-flight run for the user"""
        remaining = self._in_flight.get(user_id, 0) - 1
        if remaining > 0:
            self._in_flight[user_id] = remaining
            return
        self._in_flight.pop(user_id, None)
        self._latest.pop(user_id, None)

    def latest(self, user_id: str) -> int:
        return self._latest.get(user_id, 0)

    def is_current(self, user_id: str, generation: int) -> bool:
        return self._latest.get(user_id, 0) == generation

    def active_users(self) -> int:
        return len(self._latest)


@dataclass
class KeywordExtraction:
    keywords: List[ExtractedKeyword]
    key_requirements: List[str]
    role_intelligence: RoleIntelligence


@dataclass
class AnalysisOutcome:
    """Pipeline result together with what happened when saving it"""
    result: MatchResult
    content: GeneratedResumeContent
    generation: int
    stale: bool = False
    saved: bool = False
    record: Optional[AnalysisRecord] = None
    persistence_error: Optional[str] = None
    processing_time: float = 0.0
    notifications: List[str] = field(default_factory=list)


def validate_analysis_inputs(posting: JobPosting, profile: UserProfile):
    """
    Reject requests the pipeline should not run for.

    Raises:
        ValidationError: If the description is blank or the profile has no
            skills, or has skills but neither work experience nor education
    """
    if not posting.description or not posting.description.strip():
        raise ValidationError(
            "Job description cannot be empty",
            field="job_description",
            details={"reason": "EMPTY_JOB_DESCRIPTION"}
        )

    has_skills = any(skill and skill.strip() for skill in profile.skills)
    has_background = bool(profile.work_experience) or bool(profile.education)
    if not (has_skills and has_background):
        raise ValidationError(
            "Add your work experience or education, and skills, before analyzing a job",
            field="profile",
            details={
                "reason": "INSUFFICIENT_PROFILE",
                "has_skills": has_skills,
                "has_work_experience": bool(profile.work_experience),
                "has_education": bool(profile.education),
            }
        )


class AnalysisService:
    """Coordinates the pipeline stages, generations and persistence"""

    def __init__(
        self,
        keywords: Optional[KeywordService] = None,
        matching: Optional[MatchingService] = None,
        calculator: Optional[ScoreCalculator] = None,
        generator: Optional[ContentGenerator] = None,
        database: Optional[DatabaseService] = None,
        metrics: Optional[MetricsCollector] = None,
        tracker: Optional[GenerationTracker] = None
    ):
        self.keywords = keywords or keyword_service
        self.matching = matching or matching_service
        self.calculator = calculator or score_calculator
        self.generator = generator or content_generator
        self.database = database or db_service
        self.metrics = metrics or metrics_collector
        self.tracker = tracker or GenerationTracker()

    def extract(self, posting: JobPosting) -> KeywordExtraction:
        return KeywordExtraction(
            keywords=self.keywords.extract_keywords(posting.description),
            key_requirements=self.keywords.extract_key_requirements(posting.description),
            role_intelligence=self.keywords.analyze_role(posting.description, posting.title),
        )

    async def analyze(
        self,
        posting: JobPosting,
        profile: UserProfile,
        mode: Optional[str] = None
    ) -> Tuple[MatchResult, GeneratedResumeContent]:
        """
        Run the four pipeline stages in order.

        Args:
            posting: Job posting to analyze against
            profile: User profile (not modified)
            mode: Skill match mode, defaults to MATCH_MODE

        Returns:
            Tuple of (MatchResult, GeneratedResumeContent)
        """
        async with StageTimer(self.metrics, "extract"):
            extraction = self.extract(posting)

        async with StageTimer(self.metrics, "match"):
            match = self.matching.match_skills(extraction.keywords, profile, mode)

        async with StageTimer(self.metrics, "score"):
            score, source = await self.calculator.calculate_match_score(
                match,
                len(extraction.keywords),
                profile,
                posting.description
            )
            breakdown = self.calculator.calculate_breakdown(extraction.keywords, match, profile)

        result = MatchResult(
            matched_skills=match.matched,
            missing_skills=match.missing,
            key_requirements=extraction.key_requirements,
            match_score=score,
            recommendations=self.calculator.build_recommendations(extraction.keywords, match),
            critical_areas=match.critical_missing,
            keywords=extraction.keywords,
            score_breakdown=breakdown,
            score_source=source,
            critical_issues=self.calculator.identify_critical_issues(breakdown),
            role_intelligence=extraction.role_intelligence,
        )

        async with StageTimer(self.metrics, "generate"):
            content = self.generator.generate(result, profile, posting)

        logger.info(
            "pipeline_completed",
            keywords=len(extraction.keywords),
            matched=len(match.matched),
            missing=len(match.missing),
            match_score=score,
            score_source=source.value,
            ats_overall=breakdown.overall
        )

        return result, content

    async def run_analysis(
        self,
        user_id: str,
        posting: JobPosting,
        profile: UserProfile,
        persist: bool = True,
        mode: Optional[str] = None
    ) -> AnalysisOutcome:
        """
        Analyze and, when still the latest request for the user, persist.

        Persistence failures do not discard the computed result; they are
        reported on the outcome instead.
        """
        start_time = time.time()
        generation = self.tracker.issue(user_id)
        run_logger = logger.bind(generation=generation)

        run_logger.info("analysis_started", job_title=posting.title)

        try:
            result, content = await self.analyze(posting, profile, mode)
            result.generation = generation

            outcome = AnalysisOutcome(result=result, content=content, generation=generation)

            if not self.tracker.is_current(user_id, generation):
                outcome.stale = True
                outcome.notifications.append("A newer analysis was started; this result was not saved")
                run_logger.info(
                    "stale_analysis_discarded",
                    latest_generation=self.tracker.latest(user_id)
                )
            elif persist:
                try:
                    async with StageTimer(self.metrics, "persist"):
                        outcome.record = await self.database.save_analysis(user_id, result, posting)
                    outcome.saved = True
                except PersistenceError as e:
                    outcome.persistence_error = e.message
                    outcome.notifications.append("Analysis completed but could not be saved")
                    run_logger.warning(
                        "analysis_save_failed",
                        error_code=e.error_code,
                        error=e.message
                    )
        finally:
            self.tracker.finish(user_id)

        outcome.processing_time = time.time() - start_time

        run_logger.info(
            "analysis_finished",
            saved=outcome.saved,
            stale=outcome.stale,
            processing_time=outcome.processing_time
        )

        return outcome

    def generate_content(
        self,
        result: MatchResult,
        profile: UserProfile,
        posting: JobPosting
    ) -> GeneratedResumeContent:
        return self.generator.generate(result, profile, posting)


# Global service instance
analysis_service = AnalysisService()
