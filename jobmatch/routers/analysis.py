"""
Job match analysis endpoints
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi import APIRouter, HTTPException, Depends, Request

from jobmatch.utils.logger import get_logger
from jobmatch.models.entities import MatchResult, UserProfile
from jobmatch.models.requests import AnalysisRequest, KeywordRequest, ContentRequest, ProfileModel
from jobmatch.models.responses import (
    AnalysisResponse,
    KeywordExtractionResponse,
    KeywordResponse,
    ResumeContentResponse,
    RoleIntelligenceResponse,
)
from jobmatch.services.analysis_service import analysis_service, validate_analysis_inputs
from jobmatch.services.database_service import db_service
from jobmatch.services.keyword_service import load_vocabulary
from jobmatch.middleware.auth import get_current_user
from jobmatch.core.exceptions import PersistenceError, ValidationError, VocabularyLoadError

logger = get_logger(__name__)
router = APIRouter()


def error_response(
    status_code: int,
    error_code: str,
    message: str,
    request_id: Optional[str],
    details: Optional[Dict[str, Any]] = None
) -> HTTPException:
    detail = {
        "error_code": error_code,
        "message": message,
        "request_id": request_id
    }
    if details:
        detail["details"] = details
    return HTTPException(status_code=status_code, detail=detail)


async def load_profile(profile: Optional[ProfileModel], user_id: str, request_id: Optional[str]) -> UserProfile:
    """Inline profile when given, otherwise the stored one"""
    if profile is not None:
        return profile.to_entity()

    try:
        return await db_service.get_user_profile(user_id)
    except PersistenceError as e:
        logger.error("profile_load_failed", error_code=e.error_code, error=e.message)
        raise error_response(
            500,
            "PROFILE_LOAD_FAILED",
            "Failed to load your profile",
            request_id,
            details=e.details
        )


def require_description(description: str, request_id: Optional[str]):
    if not description:
        raise error_response(
            400,
            "EMPTY_JOB_DESCRIPTION",
            "Job description cannot be empty",
            request_id
        )


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze_job_match(
    request: AnalysisRequest,
    http_request: Request,
    current_user: dict = Depends(get_current_user)
) -> AnalysisResponse:
    """
    Match a profile against a job description

    Runs keyword extraction, skill matching, scoring and résumé content
    generation, then saves the analysis to the user's history.

    - **job_description**: Job posting text
    - **job_title** / **company**: Optional context, stored with the analysis
    - **profile**: Inline profile; the stored profile is used when omitted
    - **match_mode**: `substring` or `token`
    - **Returns**: Scores, keyword sets, recommendations and generated content
    """
    request_id = getattr(http_request.state, 'request_id', None)
    user_id = current_user["user_id"]

    logger.info(
        "analysis_requested",
        has_inline_profile=request.profile is not None,
        job_title=request.job_title,
        match_mode=request.match_mode
    )

    require_description(request.job_description, request_id)
    profile = await load_profile(request.profile, user_id, request_id)
    posting = request.to_posting()

    try:
        validate_analysis_inputs(posting, profile)
    except ValidationError as e:
        raise error_response(
            400,
            e.details.get("reason", e.error_code),
            e.message,
            request_id,
            details={k: v for k, v in e.details.items() if k != "reason"}
        )

    try:
        outcome = await analysis_service.run_analysis(
            user_id,
            posting,
            profile,
            persist=request.persist,
            mode=request.match_mode
        )
    except VocabularyLoadError as e:
        logger.error("vocabulary_unavailable", error=e.message)
        raise error_response(500, e.error_code, "Keyword vocabulary could not be loaded", request_id)

    result = outcome.result

    return AnalysisResponse(
        analysis_id=outcome.record.id if outcome.record else None,
        generation=outcome.generation,
        content=ResumeContentResponse.from_entity(outcome.content),
        saved=outcome.saved,
        stale=outcome.stale,
        persistence_error=outcome.persistence_error,
        notifications=outcome.notifications,
        processing_time=outcome.processing_time,
        created_at=(
            outcome.record.created_at if outcome.record and outcome.record.created_at
            else datetime.now(timezone.utc)
        ),
        **AnalysisResponse.result_fields(result)
    )


@router.post("/keywords", response_model=KeywordExtractionResponse)
async def extract_keywords(
    request: KeywordRequest,
    http_request: Request,
    current_user: dict = Depends(get_current_user)
) -> KeywordExtractionResponse:
    """
    Extract categorized keywords, key requirements and role expectations
    """
    request_id = getattr(http_request.state, 'request_id', None)
    require_description(request.job_description, request_id)

    try:
        extraction = analysis_service.extract(request.to_posting())
        vocabulary_version = load_vocabulary().version
    except VocabularyLoadError as e:
        logger.error("vocabulary_unavailable", error=e.message)
        raise error_response(500, e.error_code, "Keyword vocabulary could not be loaded", request_id)

    logger.info(
        "keywords_extracted",
        keywords=len(extraction.keywords),
        key_requirements=len(extraction.key_requirements)
    )

    return KeywordExtractionResponse(
        keywords=[KeywordResponse.from_entity(k) for k in extraction.keywords],
        key_requirements=extraction.key_requirements,
        role_intelligence=RoleIntelligenceResponse.from_entity(extraction.role_intelligence),
        vocabulary_version=vocabulary_version
    )


@router.post("/content", response_model=ResumeContentResponse)
async def generate_resume_content(
    request: ContentRequest,
    http_request: Request,
    current_user: dict = Depends(get_current_user)
) -> ResumeContentResponse:
    """
    Regenerate résumé content for a previous analysis without saving anything

    The analysis fields (matched/missing skills, score) come from the request;
    keywords are re-extracted from the job description to pick core
    competencies.
    """
    request_id = getattr(http_request.state, 'request_id', None)
    user_id = current_user["user_id"]

    require_description(request.job_description, request_id)
    profile = await load_profile(request.profile, user_id, request_id)
    posting = request.to_posting()

    try:
        extraction = analysis_service.extract(posting)
    except VocabularyLoadError as e:
        logger.error("vocabulary_unavailable", error=e.message)
        raise error_response(500, e.error_code, "Keyword vocabulary could not be loaded", request_id)

    result = MatchResult(
        matched_skills=request.matched_skills,
        missing_skills=request.missing_skills,
        key_requirements=request.key_requirements or extraction.key_requirements,
        match_score=request.match_score,
        recommendations=[],
        critical_areas=request.critical_areas,
        keywords=extraction.keywords,
        role_intelligence=extraction.role_intelligence,
    )

    content = analysis_service.generate_content(result, profile, posting)

    logger.info(
        "resume_content_regenerated",
        experiences=len(content.experiences),
        keywords_integrated=len(content.keywords_integrated)
    )

    return ResumeContentResponse.from_entity(content)
