"""
Domain entity models for the matching pipeline and the analysis store
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Any
from datetime import datetime


class KeywordCategory(str, Enum):
    TECHNICAL = "technical"
    TOOL = "tool"
    METHODOLOGY = "methodology"
    SOFT_SKILL = "soft_skill"
    CERTIFICATION = "certification"
    GENERIC = "generic"


class KeywordPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RequirementType(str, Enum):
    REQUIRED = "required"
    PREFERRED = "preferred"
    NICE_TO_HAVE = "nice_to_have"


class ScoreSource(str, Enum):
    """Which scoring path produced a match score"""
    KEYWORD_RATIO = "keyword_ratio"
    REMOTE_ESTIMATE = "remote_estimate"
    LENGTH_HEURISTIC = "length_heuristic"


@dataclass
class JobPosting:
    """Job description submitted for a single analysis request"""
    description: str
    title: Optional[str] = None
    company: Optional[str] = None


@dataclass(frozen=True)
class ExtractedKeyword:
    """Keyword found in a job posting"""
    term: str
    category: KeywordCategory
    priority: KeywordPriority
    frequency: int
    requirement_type: RequirementType
    context: str = ""


@dataclass
class RoleIntelligence:
    """Seniority and experience expectations inferred from a posting"""
    seniority_level: str = "mid"
    expected_experience: str = ""


@dataclass
class WorkExperienceEntry:
    position: str = ""
    company: str = ""
    description: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: bool = False


@dataclass
class EducationEntry:
    degree: str = ""
    institution: str = ""
    field_of_study: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    gpa: Optional[float] = None
    description: Optional[str] = None


@dataclass
class CertificationEntry:
    name: str = ""
    issuer: str = ""
    issue_date: Optional[str] = None


@dataclass
class PersonalInfo:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin: Optional[str] = None
    professional_summary: Optional[str] = None


@dataclass
class UserProfile:
    """Résumé data owned by the persistence layer; read-only pipeline input"""
    skills: List[str] = field(default_factory=list)
    work_experience: List[WorkExperienceEntry] = field(default_factory=list)
    education: List[EducationEntry] = field(default_factory=list)
    certifications: List[CertificationEntry] = field(default_factory=list)
    personal_info: PersonalInfo = field(default_factory=PersonalInfo)

    def work_history_text(self) -> str:
        """Concatenated free text of all work experience entries"""
        return " ".join(
            f"{exp.position} {exp.company} {exp.description}".strip()
            for exp in self.work_experience
        )

    def education_text(self) -> str:
        """Concatenated free text of all education entries"""
        return " ".join(
            " ".join(
                part for part in (
                    edu.degree, edu.field_of_study, edu.institution, edu.description
                ) if part
            )
            for edu in self.education
        )

    def certification_text(self) -> str:
        """Concatenated names and issuers of all certifications"""
        return " ".join(f"{cert.name} {cert.issuer}".strip() for cert in self.certifications)


@dataclass
class ExperienceRelevance:
    """How well one work experience entry lines up with the job keywords"""
    experience: str
    relevance_score: float
    keyword_matches: List[str]
    transferable_skills: List[str]
    gaps: List[str]
    optimization: str


@dataclass
class AchievementAlignment:
    """One achievement line taken from a work experience description"""
    achievement: str
    keyword_presence: List[str]
    quantified: bool


@dataclass
class SkillMatchResult:
    """Matched/missing partition of the extracted keywords"""
    matched: List[str]
    missing: List[str]
    critical_missing: List[str]
    matched_via_skills: List[str]
    experience_relevance: List[ExperienceRelevance] = field(default_factory=list)
    achievement_alignment: List[AchievementAlignment] = field(default_factory=list)


@dataclass
class ScoreBreakdown:
    """Category sub-scores and their weighted composite"""
    overall: int
    keyword: int
    content: int
    structure: int
    experience: int


@dataclass
class CriticalIssue:
    issue: str
    impact: str
    priority: str
    solution: str


@dataclass
class MatchResult:
    """Outcome of one (JobPosting, UserProfile) analysis"""
    matched_skills: List[str]
    missing_skills: List[str]
    key_requirements: List[str]
    match_score: int
    recommendations: List[str]
    critical_areas: List[str]
    keywords: List[ExtractedKeyword] = field(default_factory=list)
    score_breakdown: Optional[ScoreBreakdown] = None
    score_source: ScoreSource = ScoreSource.KEYWORD_RATIO
    critical_issues: List[CriticalIssue] = field(default_factory=list)
    role_intelligence: RoleIntelligence = field(default_factory=RoleIntelligence)
    generation: Optional[int] = None


@dataclass
class OptimizedExperience:
    """Work experience selected for the generated résumé"""
    position: str
    company: str
    duration: str
    bullets: List[str]
    keywords_integrated: List[str]
    relevance_score: float


@dataclass
class GeneratedResumeContent:
    """Résumé markup plus the structured breakdown used to build it"""
    markup: str
    summary: str
    core_competencies: List[str]
    experiences: List[OptimizedExperience]
    skills: List[str]
    keywords_integrated: List[str]


@dataclass
class AnalysisRecord:
    """Persisted analysis row; never updated in place"""
    id: str
    user_id: str
    job_title: str
    job_description: str
    match_score: int
    matched_skills: List[str]
    missing_skills: List[str]
    key_requirements: List[str]
    recommendations: List[str]
    critical_areas: List[str]
    company: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis_id": self.id,
            "user_id": self.user_id,
            "job_title": self.job_title,
            "company": self.company,
            "job_description": self.job_description,
            "match_score": self.match_score,
            "matched_skills": list(self.matched_skills),
            "missing_skills": list(self.missing_skills),
            "key_requirements": list(self.key_requirements),
            "recommendations": list(self.recommendations),
            "critical_areas": list(self.critical_areas),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
