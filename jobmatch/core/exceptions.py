"""
Custom exception hierarchy for different error types
"""
from typing import Optional, Dict, Any


class JobMatchException(Exception):
    """Base exception for all JobMatch errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(JobMatchException):
    """Missing or unusable caller identity"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="AUTHENTICATION_ERROR",
            details=details
        )


class ValidationError(JobMatchException):
    """Input validation errors"""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        if field:
            error_details["field"] = field

        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=error_details
        )


class VocabularyLoadError(JobMatchException):
    """Keyword vocabulary file is missing or malformed"""

    def __init__(self, path: str, error_message: str, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        error_details.update({
            "path": path,
            "original_error": error_message
        })

        super().__init__(
            message=f"Failed to load keyword vocabulary from {path}: {error_message}",
            error_code="VOCABULARY_LOAD_ERROR",
            details=error_details
        )


class ScoringServiceError(JobMatchException):
    """Errors from the remote ATS scoring service"""

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        api_response_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if service_name:
            error_details["service_name"] = service_name
        if api_response_code:
            error_details["api_response_code"] = api_response_code

        super().__init__(
            message=message,
            error_code=error_code or "SCORING_SERVICE_ERROR",
            details=error_details
        )


class ScoringServiceUnavailableError(ScoringServiceError):
    """Remote scoring is disabled or its circuit breaker is open"""

    def __init__(self, service_name: str, reason: str, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        error_details["reason"] = reason

        super().__init__(
            message=f"Scoring service {service_name} unavailable: {reason}",
            service_name=service_name,
            error_code="SCORING_SERVICE_UNAVAILABLE",
            details=error_details
        )


class PersistenceError(JobMatchException):
    """Errors talking to the analysis store"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if operation:
            error_details["operation"] = operation
        if table:
            error_details["table"] = table

        super().__init__(
            message=message,
            error_code=error_code or "PERSISTENCE_ERROR",
            details=error_details
        )


class RecordNotFoundError(PersistenceError):
    """Requested record does not exist"""

    def __init__(self, table: str, record_id: str, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        error_details["record_id"] = record_id

        super().__init__(
            message=f"Record {record_id} not found in {table}",
            operation="select",
            table=table,
            error_code="RECORD_NOT_FOUND",
            details=error_details
        )


class RateLimitError(JobMatchException):
    """Rate limiting errors"""

    def __init__(
        self,
        user_id: str,
        limit: int,
        window: int,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        error_details.update({
            "user_id": user_id,
            "limit": limit,
            "window": window
        })

        super().__init__(
            message=f"Rate limit exceeded: {limit} requests per {window} seconds",
            error_code="RATE_LIMIT_ERROR",
            details=error_details
        )
