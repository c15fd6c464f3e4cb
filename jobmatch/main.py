"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobmatch.config import settings
from jobmatch.utils.logger import get_logger, setup_logging
from jobmatch.middleware.monitoring import MonitoringMiddleware
from jobmatch.middleware.rate_limit import RateLimitMiddleware
from jobmatch.routers import analysis, health, history
from jobmatch.services.keyword_service import load_vocabulary
from jobmatch.core.exceptions import (
    AuthenticationError,
    JobMatchException,
    RateLimitError,
    RecordNotFoundError,
    ValidationError,
)

setup_logging()
logger = get_logger(__name__)

STATUS_CODES = {
    ValidationError: 400,
    AuthenticationError: 401,
    RecordNotFoundError: 404,
    RateLimitError: 429,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    vocabulary = load_vocabulary()
    logger.info(
        "application_started",
        version=settings.VERSION,
        persistence_backend=settings.PERSISTENCE_BACKEND,
        match_mode=settings.MATCH_MODE,
        vocabulary_version=vocabulary.version,
        remote_scoring_enabled=bool(settings.SCORING_SERVICE_URL)
    )
    yield
    logger.info("application_stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Job description keyword matching, ATS scoring and résumé content generation",
    debug=settings.DEBUG,
    lifespan=lifespan,
)


@app.exception_handler(JobMatchException)
async def jobmatch_exception_handler(request: Request, exc: JobMatchException) -> JSONResponse:
    """Errors that escaped the routers keep the same detail shape as HTTPException"""
    status_code = next(
        (code for exc_type, code in STATUS_CODES.items() if isinstance(exc, exc_type)),
        500
    )
    logger.error(
        "unhandled_application_error",
        error_code=exc.error_code,
        error=exc.message,
        status_code=status_code
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": {
                "error_code": exc.error_code,
                "message": exc.message,
                "details": exc.details,
                "request_id": getattr(request.state, 'request_id', None)
            }
        }
    )


# Last added runs first: monitoring assigns the request id before rate limiting
app.add_middleware(RateLimitMiddleware)
app.add_middleware(MonitoringMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.API_V1_PREFIX, tags=["health"])
app.include_router(analysis.router, prefix=settings.API_V1_PREFIX, tags=["analysis"])
app.include_router(history.router, prefix=settings.API_V1_PREFIX, tags=["history"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("jobmatch.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
