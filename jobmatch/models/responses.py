"""
Pydantic response models for API endpoints
"""
from dataclasses import asdict
from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field

from jobmatch.models.entities import (
    AnalysisRecord,
    ExtractedKeyword,
    GeneratedResumeContent,
    MatchResult,
    RoleIntelligence,
)


class KeywordResponse(BaseModel):
    term: str
    category: str
    priority: str
    frequency: int
    requirement_type: str
    context: str = ""

    @classmethod
    def from_entity(cls, keyword: ExtractedKeyword) -> "KeywordResponse":
        return cls(
            term=keyword.term,
            category=keyword.category.value,
            priority=keyword.priority.value,
            frequency=keyword.frequency,
            requirement_type=keyword.requirement_type.value,
            context=keyword.context,
        )


class RoleIntelligenceResponse(BaseModel):
    seniority_level: str
    expected_experience: str = ""

    @classmethod
    def from_entity(cls, role: RoleIntelligence) -> "RoleIntelligenceResponse":
        return cls(**asdict(role))


class KeywordExtractionResponse(BaseModel):
    keywords: List[KeywordResponse]
    key_requirements: List[str]
    role_intelligence: RoleIntelligenceResponse
    vocabulary_version: Optional[str] = None


class ScoreBreakdownResponse(BaseModel):
    overall: int = Field(..., ge=0, le=100)
    keyword: int = Field(..., ge=0, le=100)
    content: int = Field(..., ge=0, le=100)
    structure: int = Field(..., ge=0, le=100)
    experience: int = Field(..., ge=0, le=100)


class CriticalIssueResponse(BaseModel):
    issue: str
    impact: str
    priority: str
    solution: str


class OptimizedExperienceResponse(BaseModel):
    position: str
    company: str
    duration: str
    bullets: List[str]
    keywords_integrated: List[str]
    relevance_score: float


class ResumeContentResponse(BaseModel):
    markup: str
    summary: str
    core_competencies: List[str]
    experiences: List[OptimizedExperienceResponse]
    skills: List[str]
    keywords_integrated: List[str]

    @classmethod
    def from_entity(cls, content: GeneratedResumeContent) -> "ResumeContentResponse":
        return cls(**asdict(content))


class AnalysisResponse(BaseModel):
    """Complete analysis result plus persistence status"""
    analysis_id: Optional[str] = None
    generation: int
    match_score: int = Field(..., ge=0, le=100)
    score_source: str
    matched_skills: List[str]
    missing_skills: List[str]
    key_requirements: List[str]
    recommendations: List[str]
    critical_areas: List[str]
    keywords: List[KeywordResponse]
    score_breakdown: Optional[ScoreBreakdownResponse] = None
    critical_issues: List[CriticalIssueResponse] = Field(default_factory=list)
    role_intelligence: RoleIntelligenceResponse
    content: ResumeContentResponse
    saved: bool
    stale: bool = False
    persistence_error: Optional[str] = None
    notifications: List[str] = Field(default_factory=list)
    processing_time: float
    created_at: datetime

    @staticmethod
    def result_fields(result: MatchResult) -> Dict[str, Any]:
        return {
            "match_score": result.match_score,
            "score_source": result.score_source.value,
            "matched_skills": result.matched_skills,
            "missing_skills": result.missing_skills,
            "key_requirements": result.key_requirements,
            "recommendations": result.recommendations,
            "critical_areas": result.critical_areas,
            "keywords": [KeywordResponse.from_entity(k) for k in result.keywords],
            "score_breakdown": (
                ScoreBreakdownResponse(**asdict(result.score_breakdown))
                if result.score_breakdown else None
            ),
            "critical_issues": [CriticalIssueResponse(**asdict(i)) for i in result.critical_issues],
            "role_intelligence": RoleIntelligenceResponse.from_entity(result.role_intelligence),
        }


class AnalysisRecordResponse(BaseModel):
    """Stored analysis as returned by the history endpoints"""
    analysis_id: str
    user_id: str
    job_title: str
    company: Optional[str] = None
    job_description: str
    match_score: int
    matched_skills: List[str]
    missing_skills: List[str]
    key_requirements: List[str]
    recommendations: List[str]
    critical_areas: List[str]
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, record: AnalysisRecord) -> "AnalysisRecordResponse":
        data = asdict(record)
        data["analysis_id"] = data.pop("id")
        return cls(**data)


class AnalysisSummary(BaseModel):
    analysis_id: str
    job_title: str
    company: Optional[str] = None
    match_score: int
    created_at: Optional[datetime] = None
    matched_skills_count: int
    missing_skills_count: int


class AnalysisListResponse(BaseModel):
    analyses: List[AnalysisSummary]
    total_count: int
    page: int
    page_size: int
    has_next: bool
