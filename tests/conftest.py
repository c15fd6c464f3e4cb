"""
Pytest configuration and shared fixtures for the matching pipeline tests
"""
import pytest

# Setup test environment before importing application modules
from tests.test_config import setup_test_environment, cleanup_test_environment

setup_test_environment()

from jobmatch.models.entities import (  # noqa: E402
    CertificationEntry,
    EducationEntry,
    ExtractedKeyword,
    JobPosting,
    KeywordCategory,
    KeywordPriority,
    PersonalInfo,
    RequirementType,
    UserProfile,
    WorkExperienceEntry,
)
from jobmatch.services.database_service import InMemoryAnalysisStore, db_service  # noqa: E402
from jobmatch.utils.metrics import metrics_collector  # noqa: E402


SAMPLE_JOB_DESCRIPTION = """
Senior Backend Engineer

We are looking for a senior engineer to join our platform team.
Python and AWS experience is required. 5+ years of experience building REST APIs.
Docker and Kubernetes are preferred. Familiarity with Agile is nice to have.
You will work closely with product on platform reliability and platform tooling.
"""


def make_keyword(
    term: str,
    priority: KeywordPriority = KeywordPriority.MEDIUM,
    category: KeywordCategory = KeywordCategory.TECHNICAL,
    frequency: int = 1
) -> ExtractedKeyword:
    """Build an ExtractedKeyword without running the extractor"""
    requirement_type = (
        RequirementType.REQUIRED if priority == KeywordPriority.CRITICAL
        else RequirementType.PREFERRED
    )
    return ExtractedKeyword(
        term=term,
        category=category,
        priority=priority,
        frequency=frequency,
        requirement_type=requirement_type,
    )


@pytest.fixture
def sample_job_description() -> str:
    return SAMPLE_JOB_DESCRIPTION


@pytest.fixture
def sample_posting() -> JobPosting:
    return JobPosting(
        description=SAMPLE_JOB_DESCRIPTION,
        title="Senior Backend Engineer",
        company="Acme Corp"
    )


@pytest.fixture
def sample_profile() -> UserProfile:
    """Profile with every section filled in"""
    return UserProfile(
        skills=["Python", "Docker", "PostgreSQL"],
        work_experience=[
            WorkExperienceEntry(
                position="Python Developer",
                company="Initech",
                description=(
                    "Built REST services in Python on AWS\n"
                    "Reduced API latency by 40%\n"
                    "Mentored two junior engineers"
                ),
                start_date="2018-01-01",
                is_current=True,
            ),
            WorkExperienceEntry(
                position="Support Analyst",
                company="Globex",
                description="Answered customer tickets\nWrote internal documentation",
                start_date="2015-06-01",
                end_date="2017-12-01",
            ),
        ],
        education=[
            EducationEntry(
                degree="BSc Computer Science",
                institution="State University",
                start_date="2011-09-01",
                end_date="2015-06-01",
                gpa=3.6,
            )
        ],
        certifications=[
            CertificationEntry(name="AWS Certified Developer", issuer="Amazon", issue_date="2020-03-01")
        ],
        personal_info=PersonalInfo(
            name="Jane Doe",
            email="jane@example.com",
            phone="555-0100",
            location="Berlin",
        ),
    )


@pytest.fixture
def minimal_profile() -> UserProfile:
    """Smallest profile the pipeline accepts: one skill and one education entry"""
    return UserProfile(
        skills=["Python"],
        education=[EducationEntry(degree="BSc", institution="State University")],
    )


@pytest.fixture
def memory_store():
    """Fresh in-memory store installed on the global database service"""
    store = InMemoryAnalysisStore()
    previous = db_service._store
    db_service.use_store(store)
    yield store
    db_service.use_store(previous)


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics_collector.reset()
    yield
    metrics_collector.reset()


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Setup and cleanup test environment for the entire test session"""
    setup_test_environment()
    yield
    cleanup_test_environment()


@pytest.fixture
def keyword_factory():
    return make_keyword
