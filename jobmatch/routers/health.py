"""
Health check endpoints
"""
from datetime import datetime, timezone
from typing import Dict, Any
from fastapi import APIRouter, HTTPException

from jobmatch.config import settings
from jobmatch.utils.logger import get_logger
from jobmatch.utils.metrics import metrics_collector
from jobmatch.services.database_service import db_service
from jobmatch.services.scoring_client import scoring_client
from jobmatch.services.keyword_service import load_vocabulary
from jobmatch.core.exceptions import JobMatchException

logger = get_logger(__name__)
router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint for load balancers
    """
    return {
        "status": "healthy",
        "timestamp": _now(),
        "service": settings.APP_NAME,
        "version": settings.VERSION
    }


@router.get("/health/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """
    Health of every dependency plus collected metrics

    - analysis store (memory or Supabase)
    - keyword vocabulary
    - remote scoring service (disabled or degraded only lowers status to degraded)

    Returns 503 when the store or the vocabulary is unusable.
    """
    logger.info("detailed_health_check_requested")

    health_status = {
        "service": settings.APP_NAME,
        "version": settings.VERSION,
        "timestamp": _now(),
        "status": "healthy",
        "checks": {}
    }

    try:
        database_health = await db_service.health_check()
    except JobMatchException as e:
        database_health = {"status": "unhealthy", "error": e.message}
    health_status["checks"]["database"] = database_health
    if database_health.get("status") != "healthy":
        health_status["status"] = "unhealthy"

    try:
        vocabulary = load_vocabulary()
        health_status["checks"]["vocabulary"] = {
            "status": "healthy",
            "version": vocabulary.version,
            "total_terms": vocabulary.total_terms
        }
    except JobMatchException as e:
        health_status["checks"]["vocabulary"] = {"status": "unhealthy", "error": e.message}
        health_status["status"] = "unhealthy"

    scoring_health = await scoring_client.health_check()
    health_status["checks"]["scoring_service"] = scoring_health
    if scoring_health["status"] == "degraded" and health_status["status"] == "healthy":
        health_status["status"] = "degraded"

    health_status["metrics"] = await metrics_collector.get_metrics_summary()

    if health_status["status"] == "unhealthy":
        logger.warning("service_unhealthy", checks=health_status["checks"])
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
