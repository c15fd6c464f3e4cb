#!/usr/bin/env python3
"""
Keyword vocabulary validation script
"""
import json
import sys
from collections import Counter
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from jobmatch.core.exceptions import VocabularyLoadError  # noqa: E402
from jobmatch.models.entities import KeywordCategory  # noqa: E402
from jobmatch.services.keyword_service import DEFAULT_VOCABULARY_PATH, load_vocabulary  # noqa: E402


def validate_vocabulary(path: str) -> bool:
    """Validate a keyword vocabulary file"""

    vocabulary_path = Path(path)

    if not vocabulary_path.exists():
        print(f"ERROR: Vocabulary not found at {vocabulary_path}")
        return False

    try:
        with open(vocabulary_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        print(f"ERROR: Invalid JSON: {e}")
        return False

    print("✓ Vocabulary JSON syntax is valid")

    if 'categories' not in raw:
        print("ERROR: Missing required field 'categories'")
        return False

    if 'version' not in raw:
        print("WARNING: No 'version' field; analyses will report 'unversioned'")

    try:
        vocabulary = load_vocabulary(str(vocabulary_path))
    except VocabularyLoadError as e:
        print(f"ERROR: {e.message}")
        return False

    print(f"✓ Vocabulary version {vocabulary.version} loads cleanly")

    for category in KeywordCategory:
        if category == KeywordCategory.GENERIC:
            continue
        terms = vocabulary.categories.get(category, ())
        if not terms:
            print(f"WARNING: Category '{category.value}' has no terms")
        else:
            print(f"✓ {category.value}: {len(terms)} terms")

    # A term listed in two categories is only ever reported under the first
    occurrences = Counter(term for terms in vocabulary.categories.values() for term in terms)
    duplicates = sorted(term for term, count in occurrences.items() if count > 1)
    if duplicates:
        print(f"WARNING: Terms listed in more than one category: {', '.join(duplicates)}")

    stop_listed = sorted(set(occurrences) & vocabulary.stop_words)
    if stop_listed:
        print(f"WARNING: Terms that are also stop words: {', '.join(stop_listed)}")

    unknown_synonyms = sorted(canonical for canonical in vocabulary.synonyms if canonical not in occurrences)
    if unknown_synonyms:
        print(f"WARNING: Synonyms for terms not in any category: {', '.join(unknown_synonyms)}")
    else:
        print(f"✓ {len(vocabulary.synonyms)} synonym groups reference known terms")

    print(f"✓ {len(vocabulary.stop_words)} stop words")
    print(f"\nTotal: {vocabulary.total_terms} terms")

    return True


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_VOCABULARY_PATH

    if validate_vocabulary(target):
        sys.exit(0)
    else:
        sys.exit(1)
