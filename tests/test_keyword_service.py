"""
Unit tests for keyword extraction, key requirements and role analysis
"""
import json
import pytest

from jobmatch.services.keyword_service import (
    KeywordExtractor,
    KeywordService,
    KeywordVocabulary,
    MAX_GENERIC_TERMS,
    load_vocabulary,
    term_pattern,
)
from jobmatch.models.entities import KeywordCategory, KeywordPriority, RequirementType
from jobmatch.core.exceptions import VocabularyLoadError


@pytest.fixture
def extractor():
    return KeywordExtractor(load_vocabulary())


def by_term(keywords):
    return {k.term: k for k in keywords}


class TestVocabularyLoading:
    """Test loading and validating the keyword vocabulary file"""

    def test_bundled_vocabulary_loads(self):
        vocabulary = load_vocabulary()

        assert vocabulary.version == "2024.1"
        assert "python" in vocabulary.categories[KeywordCategory.TECHNICAL]
        assert "jira" in vocabulary.categories[KeywordCategory.TOOL]
        assert KeywordCategory.GENERIC not in vocabulary.categories
        assert vocabulary.synonyms["kubernetes"] == ("k8s",)
        assert "experience" in vocabulary.stop_words
        assert vocabulary.total_terms == sum(len(t) for t in vocabulary.categories.values())

    def test_vocabulary_is_cached(self):
        assert load_vocabulary() is load_vocabulary()

    def test_missing_file_raises(self, tmp_path):
        path = str(tmp_path / "missing.json")

        with pytest.raises(VocabularyLoadError) as exc_info:
            load_vocabulary(path)

        assert exc_info.value.error_code == "VOCABULARY_LOAD_ERROR"
        assert exc_info.value.details["path"] == path

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(VocabularyLoadError):
            load_vocabulary(str(path))

    def test_unknown_category_raises(self, tmp_path):
        path = tmp_path / "unknown.json"
        path.write_text(json.dumps({"categories": {"languages": ["rust"]}}), encoding="utf-8")

        with pytest.raises(VocabularyLoadError):
            load_vocabulary(str(path))

    def test_generic_category_rejected(self, tmp_path):
        path = tmp_path / "generic.json"
        path.write_text(json.dumps({"categories": {"generic": ["widget"]}}), encoding="utf-8")

        with pytest.raises(VocabularyLoadError):
            load_vocabulary(str(path))

    def test_terms_are_normalized(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({
            "version": 3,
            "categories": {"technical": ["Rust", "rust ", " ", "Go"]},
            "synonyms": {"Go": ["Golang"]},
            "stop_words": ["The"]
        }), encoding="utf-8")

        vocabulary = load_vocabulary(str(path))

        assert vocabulary.version == "3"
        assert vocabulary.categories[KeywordCategory.TECHNICAL] == ("rust", "go")
        assert vocabulary.synonyms == {"go": ("golang",)}
        assert vocabulary.stop_words == frozenset({"the"})


class TestTermPattern:
    """Test whole-word keyword patterns"""

    def test_does_not_match_inside_longer_word(self):
        assert term_pattern("java").search("Senior JavaScript engineer") is None

    def test_matches_terms_with_symbols(self):
        assert term_pattern("c++").search("Modern C++ experience")
        assert term_pattern("ci/cd").search("Own our CI/CD pipelines")
        assert term_pattern("node.js").search("Node.js services")

    def test_case_insensitive(self):
        assert term_pattern("aws").search("AWS Lambda")


class TestKeywordExtraction:
    """Test the vocabulary and frequency passes"""

    def test_empty_text_returns_no_keywords(self, extractor):
        assert extractor.extract("") == []
        assert extractor.extract("   \n ") == []

    def test_required_context_marks_keyword_critical(self, extractor):
        keywords = by_term(extractor.extract("Python is required for this role."))

        python = keywords["python"]
        assert python.category == KeywordCategory.TECHNICAL
        assert python.priority == KeywordPriority.CRITICAL
        assert python.requirement_type == RequirementType.REQUIRED
        assert "required" in python.context

    def test_preferred_context(self, extractor):
        docker = by_term(extractor.extract("Docker is preferred."))["docker"]

        assert docker.priority == KeywordPriority.MEDIUM
        assert docker.requirement_type == RequirementType.PREFERRED

    def test_nice_to_have_context(self, extractor):
        agile = by_term(extractor.extract("Agile is nice to have."))["agile"]

        assert agile.category == KeywordCategory.METHODOLOGY
        assert agile.priority == KeywordPriority.MEDIUM
        assert agile.requirement_type == RequirementType.NICE_TO_HAVE

    def test_experience_context_marks_keyword_high(self, extractor):
        sql = by_term(extractor.extract("Three years with SQL."))["sql"]

        assert sql.priority == KeywordPriority.HIGH
        assert sql.requirement_type == RequirementType.PREFERRED

    def test_no_trigger_uses_default_priority(self, extractor):
        jira = by_term(extractor.extract("We track work in Jira."))["jira"]

        assert jira.category == KeywordCategory.TOOL
        assert jira.priority == KeywordPriority.MEDIUM
        assert jira.requirement_type == RequirementType.PREFERRED

    def test_frequency_counts_every_occurrence(self, extractor):
        keywords = by_term(extractor.extract("Python services. Python tooling. python scripts."))

        assert keywords["python"].frequency == 3

    def test_terms_are_unique(self, extractor, sample_job_description):
        keywords = extractor.extract(sample_job_description)
        terms = [k.term for k in keywords]

        assert len(terms) == len(set(terms))

    def test_requires_and_experience_scenario(self, extractor):
        keywords = extractor.extract("Requires Python and AWS experience, 5+ years")

        assert [k.term for k in keywords] == ["python", "aws"]
        assert all(k.priority == KeywordPriority.HIGH for k in keywords)

    def test_vocabulary_terms_come_before_generic_terms(self, extractor):
        keywords = extractor.extract("Our platform uses Python. The platform is growing.")

        assert [k.term for k in keywords] == ["python", "platform"]
        platform = keywords[1]
        assert platform.category == KeywordCategory.GENERIC
        assert platform.priority == KeywordPriority.LOW
        assert platform.requirement_type == RequirementType.NICE_TO_HAVE
        assert platform.frequency == 2

    def test_generic_terms_need_repetition(self, extractor):
        keywords = extractor.extract("Our platform uses Python.")

        assert all(k.category != KeywordCategory.GENERIC for k in keywords)

    def test_stop_words_are_not_generic_terms(self, extractor):
        keywords = extractor.extract("Strong skills. Strong skills. Strong skills.")

        assert keywords == []

    def test_words_of_multi_word_terms_are_not_generic(self, extractor):
        keywords = extractor.extract("Machine learning matters. Learning never stops.")

        assert [k.term for k in keywords] == ["machine learning"]

    def test_generic_terms_are_capped(self, extractor):
        words = ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot",
                 "golf", "hotel", "india", "juliet", "kilo", "lima"]
        text = " ".join(words + words)

        keywords = extractor.extract(text)

        assert len(keywords) == MAX_GENERIC_TERMS
        assert [k.term for k in keywords] == words[:MAX_GENERIC_TERMS]

    def test_custom_vocabulary(self):
        vocabulary = KeywordVocabulary(
            version="test",
            categories={KeywordCategory.TECHNICAL: ("rust",)},
            synonyms={},
            stop_words=frozenset()
        )
        extractor = KeywordExtractor(vocabulary)

        keywords = extractor.extract("Rust and Python")

        assert [k.term for k in keywords] == ["rust"]


class TestKeyRequirements:
    """Test key requirement sentence extraction"""

    def test_requirement_sentences(self, extractor, sample_job_description):
        requirements = extractor.extract_key_requirements(sample_job_description)

        assert requirements == [
            "Python and AWS experience is required",
            "5+ years of experience building REST APIs",
        ]

    def test_short_sentences_skipped(self, extractor):
        assert extractor.extract_key_requirements("Degree. Must. Required!") == []

    def test_at_most_five_requirements(self, extractor):
        text = " ".join(f"A degree is required for track {i}." for i in range(7))

        requirements = extractor.extract_key_requirements(text)

        assert len(requirements) == 5
        assert requirements[0] == "A degree is required for track 0"

    def test_empty_text(self, extractor):
        assert extractor.extract_key_requirements("") == []


class TestRoleAnalysis:
    """Test seniority and experience inference"""

    def test_senior_role_with_years(self, extractor, sample_job_description):
        role = extractor.analyze_role(sample_job_description, "Senior Backend Engineer")

        assert role.seniority_level == "senior"
        assert role.expected_experience == "5+ years"

    @pytest.mark.parametrize("text,level", [
        ("Junior developer wanted", "entry"),
        ("Entry level analyst", "entry"),
        ("Principal engineer for payments", "senior"),
        ("Director of Engineering", "executive"),
        ("Head of Data", "executive"),
        ("Strong leadership skills", "mid"),
    ])
    def test_seniority_levels(self, extractor, text, level):
        assert extractor.analyze_role(text).seniority_level == level

    def test_title_contributes_to_seniority(self, extractor):
        role = extractor.analyze_role("Build payment systems", title="Lead Engineer")

        assert role.seniority_level == "senior"

    def test_no_experience_requirement(self, extractor):
        role = extractor.analyze_role("Build payment systems")

        assert role.seniority_level == "mid"
        assert role.expected_experience == ""

    def test_experience_without_plus(self, extractor):
        role = extractor.analyze_role("3 years experience with Go")

        assert role.expected_experience == "3+ years"


class TestKeywordService:
    """Test the lazily constructed service wrapper"""

    def test_extractor_built_once(self):
        service = KeywordService()

        assert service.extractor is service.extractor

    def test_delegates_to_extractor(self):
        service = KeywordService()

        assert [k.term for k in service.extract_keywords("Python is required.")] == ["python"]
        assert service.extract_key_requirements("Python is required.") == ["Python is required"]
        assert service.analyze_role("Senior role").seniority_level == "senior"
