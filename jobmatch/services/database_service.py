"""
Analysis persistence and profile loading.

Two backends share one interface: an in-process store used by default and
in tests, and a Supabase store that talks to the PostgREST API over httpx.
"""
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from jobmatch.config import settings
from jobmatch.utils.logger import get_logger
from jobmatch.utils.metrics import MetricsCollector, metrics_collector
from jobmatch.models.entities import (
    AnalysisRecord,
    CertificationEntry,
    EducationEntry,
    JobPosting,
    MatchResult,
    PersonalInfo,
    UserProfile,
    WorkExperienceEntry,
)
from jobmatch.core.exceptions import PersistenceError, RecordNotFoundError

logger = get_logger(__name__)

ANALYSES_TABLE = "job_analyses"
DEFAULT_JOB_TITLE = "Untitled Position"
SUPABASE_API_NAME = "supabase"


def build_record(user_id: str, result: MatchResult, posting: JobPosting) -> AnalysisRecord:
    return AnalysisRecord(
        id=str(uuid.uuid4()),
        user_id=user_id,
        job_title=posting.title or DEFAULT_JOB_TITLE,
        company=posting.company,
        job_description=posting.description,
        match_score=result.match_score,
        matched_skills=list(result.matched_skills),
        missing_skills=list(result.missing_skills),
        key_requirements=list(result.key_requirements),
        recommendations=list(result.recommendations),
        critical_areas=list(result.critical_areas),
        created_at=datetime.now(timezone.utc),
    )


class AnalysisStore:
    """Interface shared by the persistence backends"""

    backend = "base"

    async def get_user_profile(self, user_id: str) -> UserProfile:
        raise NotImplementedError

    async def save_analysis(self, user_id: str, result: MatchResult, posting: JobPosting) -> AnalysisRecord:
        raise NotImplementedError

    async def list_analyses(self, user_id: str, limit: int = 10, offset: int = 0) -> List[AnalysisRecord]:
        raise NotImplementedError

    async def count_analyses(self, user_id: str) -> int:
        raise NotImplementedError

    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisRecord]:
        raise NotImplementedError

    async def delete_analysis(self, analysis_id: str, user_id: str) -> bool:
        raise NotImplementedError

    async def health_check(self) -> Dict[str, Any]:
        raise NotImplementedError


class InMemoryAnalysisStore(AnalysisStore):
    """Process-local store; records are lost on restart"""

    backend = "memory"

    def __init__(self):
        self.profiles: Dict[str, UserProfile] = {}
        self.records: Dict[str, AnalysisRecord] = {}

    def put_user_profile(self, user_id: str, profile: UserProfile):
        self.profiles[user_id] = profile

    async def get_user_profile(self, user_id: str) -> UserProfile:
        return self.profiles.get(user_id) or UserProfile()

    async def save_analysis(self, user_id: str, result: MatchResult, posting: JobPosting) -> AnalysisRecord:
        record = build_record(user_id, result, posting)
        self.records[record.id] = record
        return record

    async def list_analyses(self, user_id: str, limit: int = 10, offset: int = 0) -> List[AnalysisRecord]:
        # dicts keep insertion order, so reversing gives newest first
        user_records = [r for r in reversed(list(self.records.values())) if r.user_id == user_id]
        return user_records[offset:offset + limit]

    async def count_analyses(self, user_id: str) -> int:
        return sum(1 for r in self.records.values() if r.user_id == user_id)

    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisRecord]:
        return self.records.get(analysis_id)

    async def delete_analysis(self, analysis_id: str, user_id: str) -> bool:
        record = self.records.get(analysis_id)
        if record is None or record.user_id != user_id:
            return False
        del self.records[analysis_id]
        return True

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "backend": self.backend,
            "records": len(self.records),
        }


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _record_from_row(row: Dict[str, Any]) -> AnalysisRecord:
    return AnalysisRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        job_title=row.get("job_title") or DEFAULT_JOB_TITLE,
        company=row.get("company"),
        job_description=row.get("job_description") or "",
        match_score=int(row.get("match_score") or 0),
        matched_skills=row.get("matched_skills") or [],
        missing_skills=row.get("missing_skills") or [],
        key_requirements=row.get("key_requirements") or [],
        recommendations=row.get("recommendations") or [],
        critical_areas=row.get("critical_areas") or [],
        created_at=_parse_timestamp(row.get("created_at")),
    )


class SupabaseAnalysisStore(AnalysisStore):
    """Store backed by Supabase tables through the PostgREST endpoint"""

    backend = "supabase"

    def __init__(
        self,
        url: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.url = (url or settings.SUPABASE_URL).rstrip("/")
        self.service_key = service_key or settings.SUPABASE_SERVICE_ROLE_KEY
        self.timeout = timeout or settings.SUPABASE_TIMEOUT
        self.transport = transport
        self.metrics = metrics or metrics_collector

        if not self.url or not self.service_key:
            raise PersistenceError(
                "Supabase backend requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY",
                operation="configure",
                error_code="PERSISTENCE_NOT_CONFIGURED"
            )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.url}/rest/v1",
            headers={
                "apikey": self.service_key,
                "Authorization": f"Bearer {self.service_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(
        self,
        method: str,
        table: str,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        started = time.time()
        response = None
        try:
            async with self._client() as client:
                response = await client.request(method, f"/{table}", params=params, json=json, headers=headers)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.error(
                "supabase_request_failed",
                table=table,
                operation=operation,
                status_code=e.response.status_code,
                error=e.response.text
            )
            raise PersistenceError(
                f"Supabase {operation} on {table} failed with status {e.response.status_code}",
                operation=operation,
                table=table,
                details={"status_code": e.response.status_code}
            )
        except httpx.HTTPError as e:
            logger.error("supabase_unreachable", table=table, operation=operation, error=str(e))
            raise PersistenceError(
                f"Supabase {operation} on {table} failed: {e}",
                operation=operation,
                table=table
            )
        finally:
            await self.metrics.record_external_api_call(
                SUPABASE_API_NAME,
                time.time() - started,
                success=response is not None and response.is_success
            )

    async def _select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = await self._request("GET", table, "select", params={"select": "*", **params})
        return response.json()

    async def get_user_profile(self, user_id: str) -> UserProfile:
        owner = {"user_id": f"eq.{user_id}"}

        skills = await self._select("user_skills", owner)
        work = await self._select("work_experiences", {**owner, "order": "start_date.desc"})
        education = await self._select("education", {**owner, "order": "start_date.desc"})
        certifications = await self._select("certifications", owner)
        profiles = await self._select("profiles", {**owner, "limit": 1})

        profile_row = profiles[0] if profiles else {}

        return UserProfile(
            skills=[row["skill_name"] for row in skills if row.get("skill_name")],
            work_experience=[
                WorkExperienceEntry(
                    position=row.get("title") or "",
                    company=row.get("company_name") or "",
                    description=row.get("description") or "",
                    start_date=row.get("start_date"),
                    end_date=row.get("end_date"),
                    is_current=bool(row.get("is_current")),
                )
                for row in work
            ],
            education=[
                EducationEntry(
                    degree=row.get("degree") or "",
                    institution=row.get("institution") or "",
                    field_of_study=row.get("field_of_study"),
                    start_date=row.get("start_date"),
                    end_date=row.get("end_date"),
                    gpa=row.get("gpa"),
                    description=row.get("description"),
                )
                for row in education
            ],
            certifications=[
                CertificationEntry(
                    name=row.get("name") or "",
                    issuer=row.get("issuing_organization") or "",
                    issue_date=row.get("issue_date"),
                )
                for row in certifications
            ],
            personal_info=PersonalInfo(
                name=profile_row.get("display_name"),
                professional_summary=profile_row.get("bio"),
            ),
        )

    async def save_analysis(self, user_id: str, result: MatchResult, posting: JobPosting) -> AnalysisRecord:
        record = build_record(user_id, result, posting)
        row = record.to_dict()
        row["id"] = row.pop("analysis_id")

        response = await self._request(
            "POST",
            ANALYSES_TABLE,
            "insert",
            json=row,
            headers={"Prefer": "return=representation"}
        )
        rows = response.json()
        return _record_from_row(rows[0]) if rows else record

    async def list_analyses(self, user_id: str, limit: int = 10, offset: int = 0) -> List[AnalysisRecord]:
        rows = await self._select(ANALYSES_TABLE, {
            "user_id": f"eq.{user_id}",
            "order": "created_at.desc",
            "limit": limit,
            "offset": offset,
        })
        return [_record_from_row(row) for row in rows]

    async def count_analyses(self, user_id: str) -> int:
        response = await self._request(
            "HEAD",
            ANALYSES_TABLE,
            "count",
            params={"select": "id", "user_id": f"eq.{user_id}"},
            headers={"Prefer": "count=exact"}
        )
        # Content-Range looks like "0-9/42" or "*/0"
        content_range = response.headers.get("content-range", "*/0")
        total = content_range.rsplit("/", 1)[-1]
        return int(total) if total.isdigit() else 0

    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisRecord]:
        rows = await self._select(ANALYSES_TABLE, {"id": f"eq.{analysis_id}", "limit": 1})
        return _record_from_row(rows[0]) if rows else None

    async def delete_analysis(self, analysis_id: str, user_id: str) -> bool:
        response = await self._request(
            "DELETE",
            ANALYSES_TABLE,
            "delete",
            params={"id": f"eq.{analysis_id}", "user_id": f"eq.{user_id}"},
            headers={"Prefer": "return=representation"}
        )
        return len(response.json()) > 0

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self._select(ANALYSES_TABLE, {"limit": 1})
            return {"status": "healthy", "backend": self.backend}
        except PersistenceError as e:
            return {"status": "unhealthy", "backend": self.backend, "error": e.message}


def create_store(backend: Optional[str] = None) -> AnalysisStore:
    """Build the store selected by PERSISTENCE_BACKEND"""
    backend = (backend or settings.PERSISTENCE_BACKEND).lower()
    if backend == "supabase":
        return SupabaseAnalysisStore()
    if backend == "memory":
        return InMemoryAnalysisStore()
    raise PersistenceError(
        f"Unknown persistence backend: {backend}",
        operation="configure",
        error_code="PERSISTENCE_NOT_CONFIGURED"
    )


class DatabaseService:
    """Lazily creates the configured store and delegates to it"""

    def __init__(self, store: Optional[AnalysisStore] = None):
        self._store = store

    @property
    def store(self) -> AnalysisStore:
        if self._store is None:
            self._store = create_store()
            logger.info("analysis_store_initialized", backend=self._store.backend)
        return self._store

    def use_store(self, store: AnalysisStore):
        self._store = store

    async def get_user_profile(self, user_id: str) -> UserProfile:
        return await self.store.get_user_profile(user_id)

    async def save_analysis(self, user_id: str, result: MatchResult, posting: JobPosting) -> AnalysisRecord:
        record = await self.store.save_analysis(user_id, result, posting)
        logger.info("analysis_saved", analysis_id=record.id, match_score=record.match_score)
        return record

    async def list_analyses(self, user_id: str, limit: int = 10, offset: int = 0) -> List[AnalysisRecord]:
        return await self.store.list_analyses(user_id, limit=limit, offset=offset)

    async def count_analyses(self, user_id: str) -> int:
        return await self.store.count_analyses(user_id)

    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisRecord]:
        return await self.store.get_analysis(analysis_id)

    async def require_analysis(self, analysis_id: str) -> AnalysisRecord:
        analysis = await self.store.get_analysis(analysis_id)
        if analysis is None:
            raise RecordNotFoundError(ANALYSES_TABLE, analysis_id)
        return analysis

    async def delete_analysis(self, analysis_id: str, user_id: str) -> bool:
        deleted = await self.store.delete_analysis(analysis_id, user_id)
        if deleted:
            logger.info("analysis_deleted", analysis_id=analysis_id)
        return deleted

    async def health_check(self) -> Dict[str, Any]:
        return await self.store.health_check()


# Global service instance
db_service = DatabaseService()
