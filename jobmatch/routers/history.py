"""
Analysis history endpoints for retrieving past analyses
"""
from uuid import UUID
from typing import Dict
from fastapi import APIRouter, HTTPException, Depends, Query

from jobmatch.utils.logger import get_logger
from jobmatch.models.entities import AnalysisRecord
from jobmatch.models.responses import AnalysisListResponse, AnalysisRecordResponse, AnalysisSummary
from jobmatch.services.database_service import db_service
from jobmatch.middleware.auth import get_current_user
from jobmatch.core.exceptions import PersistenceError, RecordNotFoundError

logger = get_logger(__name__)
router = APIRouter()


def _database_error(message: str, error: PersistenceError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={
            "error_code": "DATABASE_ERROR",
            "message": message,
            "details": {"error": error.message, **error.details}
        }
    )


async def _get_owned_analysis(analysis_id: UUID, user_id: str, action: str) -> AnalysisRecord:
    """Fetch an analysis and make sure the caller owns it"""
    try:
        analysis = await db_service.require_analysis(str(analysis_id))
    except RecordNotFoundError:
        logger.warning("analysis_not_found", analysis_id=str(analysis_id))
        raise HTTPException(
            status_code=404,
            detail={
                "error_code": "ANALYSIS_NOT_FOUND",
                "message": f"Analysis with ID {analysis_id} not found"
            }
        )

    if analysis.user_id != user_id:
        logger.warning(
            "unauthorized_analysis_access",
            analysis_id=str(analysis_id),
            analysis_owner=analysis.user_id
        )
        raise HTTPException(
            status_code=403,
            detail={
                "error_code": "UNAUTHORIZED_ACCESS",
                "message": f"You don't have permission to {action} this analysis"
            }
        )

    return analysis


@router.get("/analyses", response_model=AnalysisListResponse)
async def get_user_analyses(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    page_size: int = Query(10, ge=1, le=100, description="Number of items per page"),
    current_user: dict = Depends(get_current_user)
) -> AnalysisListResponse:
    """
    Get paginated list of user's past analyses, newest first

    - **page**: Page number (starting from 1)
    - **page_size**: Number of analyses per page (1-100)
    """
    user_id = current_user["user_id"]
    offset = (page - 1) * page_size

    try:
        analyses = await db_service.list_analyses(user_id, limit=page_size, offset=offset)
        total_count = await db_service.count_analyses(user_id)
    except PersistenceError as e:
        logger.error("failed_to_retrieve_user_analyses", error=e.message)
        raise _database_error("Failed to retrieve user analyses", e)

    has_next = (offset + page_size) < total_count

    logger.info(
        "user_analyses_retrieved",
        page=page,
        page_size=page_size,
        total_count=total_count,
        returned_count=len(analyses),
        has_next=has_next
    )

    return AnalysisListResponse(
        analyses=[
            AnalysisSummary(
                analysis_id=analysis.id,
                job_title=analysis.job_title,
                company=analysis.company,
                match_score=analysis.match_score,
                created_at=analysis.created_at,
                matched_skills_count=len(analysis.matched_skills),
                missing_skills_count=len(analysis.missing_skills)
            )
            for analysis in analyses
        ],
        total_count=total_count,
        page=page,
        page_size=page_size,
        has_next=has_next
    )


@router.get("/analyses/{analysis_id}", response_model=AnalysisRecordResponse)
async def get_analysis_by_id(
    analysis_id: UUID,
    current_user: dict = Depends(get_current_user)
) -> AnalysisRecordResponse:
    """Get a stored analysis by ID"""
    try:
        analysis = await _get_owned_analysis(analysis_id, current_user["user_id"], "access")
    except PersistenceError as e:
        logger.error("failed_to_retrieve_analysis", analysis_id=str(analysis_id), error=e.message)
        raise _database_error("Failed to retrieve analysis", e)

    return AnalysisRecordResponse.from_entity(analysis)


@router.delete("/analyses/{analysis_id}")
async def delete_analysis(
    analysis_id: UUID,
    current_user: dict = Depends(get_current_user)
) -> Dict[str, str]:
    """
    Delete an analysis by ID

    Permanently removes an analysis from the user's history.
    """
    user_id = current_user["user_id"]

    try:
        await _get_owned_analysis(analysis_id, user_id, "delete")
        deleted = await db_service.delete_analysis(str(analysis_id), user_id)
    except PersistenceError as e:
        logger.error("failed_to_delete_analysis", analysis_id=str(analysis_id), error=e.message)
        raise _database_error("Failed to delete analysis", e)

    if not deleted:
        raise HTTPException(
            status_code=404,
            detail={
                "error_code": "ANALYSIS_NOT_FOUND",
                "message": f"Analysis with ID {analysis_id} not found"
            }
        )

    return {
        "message": "Analysis deleted successfully",
        "analysis_id": str(analysis_id)
    }
