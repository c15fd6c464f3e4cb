"""
Keyword extraction service for job descriptions
"""
import re
import json
import os
from collections import Counter
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Dict, Optional, Set, Tuple, Pattern

from jobmatch.config import settings
from jobmatch.utils.logger import get_logger
from jobmatch.models.entities import (
    ExtractedKeyword,
    KeywordCategory,
    KeywordPriority,
    RequirementType,
    RoleIntelligence,
)
from jobmatch.core.exceptions import VocabularyLoadError

logger = get_logger(__name__)

DEFAULT_VOCABULARY_PATH = os.path.join(
    os.path.dirname(__file__),
    '..',
    'data',
    'keyword_vocabulary.json'
)

# Characters inspected on each side of a keyword when assigning priority
CONTEXT_WINDOW = 50

MIN_TOKEN_LENGTH = 3
MIN_GENERIC_TERM_LENGTH = 4
MIN_GENERIC_TERM_FREQUENCY = 2
MAX_GENERIC_TERMS = 10
MAX_KEY_REQUIREMENTS = 5

_TOKEN_RE = re.compile(r"\b[a-z][a-z0-9]{%d,}\b" % (MIN_TOKEN_LENGTH - 1))
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_EXPERIENCE_RE = re.compile(r"(\d+)\+?\s*years?\s*(?:of\s*)?(?:experience|exp)", re.IGNORECASE)

CRITICAL_TRIGGERS = ("required", "must", "essential")
PREFERRED_TRIGGERS = ("preferred", "desired")
NICE_TO_HAVE_TRIGGERS = ("nice to have",)
HIGH_TRIGGERS = ("years", "experience")

REQUIREMENT_MARKERS = ("required", "must", "essential", "experience", "degree", "certification")

SENIORITY_MARKERS = (
    ("senior", ("senior", "lead", "principal")),
    ("entry", ("junior", "entry", "associate")),
    ("executive", ("director", "vp", "head of")),
)


@dataclass(frozen=True)
class KeywordVocabulary:
    """Versioned word-lists used by the fixed-vocabulary pass"""
    version: str
    categories: Dict[KeywordCategory, Tuple[str, ...]]
    synonyms: Dict[str, Tuple[str, ...]]
    stop_words: frozenset

    @property
    def total_terms(self) -> int:
        return sum(len(terms) for terms in self.categories.values())


@lru_cache(maxsize=8)
def load_vocabulary(path: Optional[str] = None) -> KeywordVocabulary:
    """
    Load the keyword vocabulary from a JSON file.

    Args:
        path: Vocabulary file; defaults to VOCABULARY_PATH or the bundled file

    Returns:
        Parsed and normalized KeywordVocabulary

    Raises:
        VocabularyLoadError: If the file is missing or malformed
    """
    vocabulary_path = path or settings.VOCABULARY_PATH or DEFAULT_VOCABULARY_PATH

    try:
        with open(vocabulary_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)

        categories = {}
        for category_name, terms in raw["categories"].items():
            category = KeywordCategory(category_name)
            if category == KeywordCategory.GENERIC:
                raise ValueError("generic terms are discovered, not configured")
            # Lower-case and de-duplicate while keeping file order
            categories[category] = tuple(dict.fromkeys(term.lower().strip() for term in terms if term.strip()))

        synonyms = {
            canonical.lower(): tuple(alias.lower() for alias in aliases)
            for canonical, aliases in raw.get("synonyms", {}).items()
        }
        stop_words = frozenset(word.lower() for word in raw.get("stop_words", []))
        version = str(raw.get("version", "unversioned"))

    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.error("vocabulary_load_failed", path=vocabulary_path, error=str(e))
        raise VocabularyLoadError(vocabulary_path, str(e))

    vocabulary = KeywordVocabulary(
        version=version,
        categories=categories,
        synonyms=synonyms,
        stop_words=stop_words,
    )

    logger.info(
        "vocabulary_loaded",
        path=vocabulary_path,
        version=vocabulary.version,
        categories=len(categories),
        total_terms=vocabulary.total_terms
    )

    return vocabulary


def term_pattern(term: str) -> Pattern:
    """Whole-word, case-insensitive pattern that also handles terms like c++ or ci/cd"""
    return re.compile(r"(?<!\w)" + re.escape(term) + r"(?!\w)", re.IGNORECASE)


class KeywordExtractor:
    """
    Extracts categorized keywords from job description text.

    Runs a fixed-vocabulary pass followed by a frequency pass that picks up
    repeated terms the vocabulary does not know about.
    """

    def __init__(self, vocabulary: Optional[KeywordVocabulary] = None):
        self.vocabulary = vocabulary or load_vocabulary()
        self._patterns: Dict[str, Pattern] = {}
        for terms in self.vocabulary.categories.values():
            for term in terms:
                self._patterns.setdefault(term, term_pattern(term))

    def extract(self, text: str) -> List[ExtractedKeyword]:
        """
        Extract keywords from a job description.

        Args:
            text: Job description text

        Returns:
            Keywords in category order then discovery order, unique by term
        """
        if not text or not text.strip():
            return []

        keywords = self._extract_vocabulary_terms(text)
        seen = {keyword.term for keyword in keywords}
        keywords.extend(self._extract_generic_terms(text, seen))

        logger.debug(
            "keywords_extracted",
            text_length=len(text),
            vocabulary_terms=len(seen),
            total_keywords=len(keywords)
        )

        return keywords

    def _extract_vocabulary_terms(self, text: str) -> List[ExtractedKeyword]:
        """Scan the text against every category word-list"""
        found: List[ExtractedKeyword] = []
        seen: Set[str] = set()

        for category, terms in self.vocabulary.categories.items():
            for term in terms:
                if term in seen:
                    continue

                matches = list(self._patterns[term].finditer(text))
                if not matches:
                    continue

                seen.add(term)
                context = self._context_window(text, matches[0].start())
                priority, requirement_type = self._classify(
                    context,
                    default=(KeywordPriority.MEDIUM, RequirementType.PREFERRED)
                )

                found.append(ExtractedKeyword(
                    term=term,
                    category=category,
                    priority=priority,
                    frequency=len(matches),
                    requirement_type=requirement_type,
                    context=context.strip()
                ))

        return found

    def _extract_generic_terms(self, text: str, known_terms: Set[str]) -> List[ExtractedKeyword]:
        """Frequency pass over word tokens not covered by the vocabulary"""
        lowered = text.lower()
        counts = Counter(_TOKEN_RE.findall(lowered))

        # Words already covered by multi-word vocabulary terms
        covered_words = set()
        for term in known_terms:
            covered_words.update(term.split())

        generic: List[ExtractedKeyword] = []
        for token, frequency in counts.items():
            if len(generic) >= MAX_GENERIC_TERMS:
                break
            if frequency < MIN_GENERIC_TERM_FREQUENCY or len(token) < MIN_GENERIC_TERM_LENGTH:
                continue
            if token in self.vocabulary.stop_words or token in covered_words:
                continue

            match = re.search(r"\b" + re.escape(token) + r"\b", lowered)
            context = self._context_window(text, match.start() if match else 0)
            priority, requirement_type = self._classify(
                context,
                default=(KeywordPriority.LOW, RequirementType.NICE_TO_HAVE)
            )

            generic.append(ExtractedKeyword(
                term=token,
                category=KeywordCategory.GENERIC,
                priority=priority,
                frequency=frequency,
                requirement_type=requirement_type,
                context=context.strip()
            ))

        return generic

    @staticmethod
    def _context_window(text: str, position: int) -> str:
        return text[max(0, position - CONTEXT_WINDOW):position + CONTEXT_WINDOW]

    @staticmethod
    def _classify(
        context: str,
        default: Tuple[KeywordPriority, RequirementType]
    ) -> Tuple[KeywordPriority, RequirementType]:
        """Assign priority and requirement type from trigger words near a match"""
        lowered = context.lower()

        if any(trigger in lowered for trigger in CRITICAL_TRIGGERS):
            return KeywordPriority.CRITICAL, RequirementType.REQUIRED
        if any(trigger in lowered for trigger in PREFERRED_TRIGGERS):
            return KeywordPriority.MEDIUM, RequirementType.PREFERRED
        if any(trigger in lowered for trigger in NICE_TO_HAVE_TRIGGERS):
            return KeywordPriority.MEDIUM, RequirementType.NICE_TO_HAVE
        if any(trigger in lowered for trigger in HIGH_TRIGGERS):
            return KeywordPriority.HIGH, default[1]

        return default

    def extract_key_requirements(self, text: str) -> List[str]:
        """Sentences that read like hard requirements, first five"""
        if not text or not text.strip():
            return []

        requirements = []
        for sentence in _SENTENCE_SPLIT_RE.split(text):
            stripped = sentence.strip()
            if len(stripped) <= 10:
                continue
            lowered = stripped.lower()
            if any(marker in lowered for marker in REQUIREMENT_MARKERS):
                requirements.append(stripped)
            if len(requirements) >= MAX_KEY_REQUIREMENTS:
                break

        return requirements

    def analyze_role(self, text: str, title: Optional[str] = None) -> RoleIntelligence:
        """Infer seniority level and expected years of experience"""
        role = RoleIntelligence()
        combined = f"{title or ''} {text or ''}".lower()

        for level, markers in SENIORITY_MARKERS:
            if any(re.search(r"\b" + re.escape(marker) + r"\b", combined) for marker in markers):
                role.seniority_level = level
                break

        experience_match = _EXPERIENCE_RE.search(text or "")
        if experience_match:
            role.expected_experience = f"{experience_match.group(1)}+ years"

        return role


class KeywordService:
    """Lazily builds the extractor so the vocabulary is read on first use"""

    def __init__(self):
        self._extractor: Optional[KeywordExtractor] = None

    @property
    def extractor(self) -> KeywordExtractor:
        if self._extractor is None:
            self._extractor = KeywordExtractor()
        return self._extractor

    def extract_keywords(self, text: str) -> List[ExtractedKeyword]:
        return self.extractor.extract(text)

    def extract_key_requirements(self, text: str) -> List[str]:
        return self.extractor.extract_key_requirements(text)

    def analyze_role(self, text: str, title: Optional[str] = None) -> RoleIntelligence:
        return self.extractor.analyze_role(text, title)


# Global service instance
keyword_service = KeywordService()
