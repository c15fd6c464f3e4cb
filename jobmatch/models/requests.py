"""
Pydantic request models for API endpoints
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal

from jobmatch.models.entities import (
    CertificationEntry,
    EducationEntry,
    JobPosting,
    PersonalInfo,
    UserProfile,
    WorkExperienceEntry,
)

MatchMode = Literal["substring", "token"]


class WorkExperienceModel(BaseModel):
    position: str = Field("", max_length=200)
    company: str = Field("", max_length=200)
    description: str = Field("", max_length=10000)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: bool = False


class EducationModel(BaseModel):
    degree: str = Field("", max_length=200)
    institution: str = Field("", max_length=200)
    field_of_study: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    gpa: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None


class CertificationModel(BaseModel):
    name: str = Field("", max_length=200)
    issuer: str = Field("", max_length=200)
    issue_date: Optional[str] = None


class PersonalInfoModel(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin: Optional[str] = None
    professional_summary: Optional[str] = Field(None, max_length=5000)


class ProfileModel(BaseModel):
    """Inline résumé data; when omitted the stored profile is loaded"""
    skills: List[str] = Field(default_factory=list)
    work_experience: List[WorkExperienceModel] = Field(default_factory=list)
    education: List[EducationModel] = Field(default_factory=list)
    certifications: List[CertificationModel] = Field(default_factory=list)
    personal_info: PersonalInfoModel = Field(default_factory=PersonalInfoModel)

    def to_entity(self) -> UserProfile:
        return UserProfile(
            skills=list(self.skills),
            work_experience=[WorkExperienceEntry(**w.model_dump()) for w in self.work_experience],
            education=[EducationEntry(**e.model_dump()) for e in self.education],
            certifications=[CertificationEntry(**c.model_dump()) for c in self.certifications],
            personal_info=PersonalInfo(**self.personal_info.model_dump()),
        )


class JobPostingRequest(BaseModel):
    """Fields shared by every request that carries a job posting"""
    job_description: str = Field(
        ...,
        max_length=20000,
        description="Job description text to analyze against"
    )
    job_title: Optional[str] = Field(
        None,
        max_length=200,
        description="Optional job title for context"
    )
    company: Optional[str] = Field(None, max_length=200)

    @field_validator('job_description')
    @classmethod
    def strip_job_description(cls, v):
        return v.strip()

    @field_validator('job_title', 'company')
    @classmethod
    def strip_optional(cls, v):
        if v is not None:
            v = v.strip()
            return v or None
        return v

    def to_posting(self) -> JobPosting:
        return JobPosting(
            description=self.job_description,
            title=self.job_title,
            company=self.company
        )


class KeywordRequest(JobPostingRequest):
    """Request model for keyword extraction only"""
    pass


class AnalysisRequest(JobPostingRequest):
    """Request model for a full job match analysis"""
    profile: Optional[ProfileModel] = Field(
        None,
        description="Inline profile; the stored profile is used when omitted"
    )
    match_mode: Optional[MatchMode] = Field(
        None,
        description="Skill matching mode; defaults to server configuration"
    )
    persist: bool = Field(True, description="Save the analysis to history")

    model_config = {
        "json_schema_extra": {
            "example": {
                "job_description": "We are looking for a Senior Python Developer. Python and AWS experience is required. 5+ years of experience with Docker preferred.",
                "job_title": "Senior Python Developer",
                "company": "Acme Corp",
                "profile": {
                    "skills": ["Python", "Docker"],
                    "work_experience": [
                        {
                            "position": "Backend Engineer",
                            "company": "Initech",
                            "description": "Built Python services on AWS\nReduced latency by 40%",
                            "start_date": "2019-01-01",
                            "is_current": True
                        }
                    ]
                }
            }
        }
    }


class ContentRequest(JobPostingRequest):
    """Request model for regenerating résumé content from an existing analysis"""
    profile: Optional[ProfileModel] = None
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    key_requirements: List[str] = Field(default_factory=list)
    critical_areas: List[str] = Field(default_factory=list)
    match_score: int = Field(0, ge=0, le=100)

    @field_validator('matched_skills', 'missing_skills', 'critical_areas')
    @classmethod
    def normalize_terms(cls, v):
        return [term.strip().lower() for term in v if term and term.strip()]
