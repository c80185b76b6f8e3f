"""
Name Classifier

Guesses whether a query reads as a common name ("American Robin") or as a
scientific binomial ("Turdus migratorius").

This is a heuristic: two-word common names written like a binomial
("Robin redbreast") and scientific names with unusual casing will be
misclassified. Downstream stages cope with either answer.
"""

from typing import Iterable

from app.taxonomy.vocabulary import Vocabulary


def is_likely_common_name(text: str, descriptors: Iterable[str]) -> bool:
    """
    Rules, first match wins:
    (a) more than two words -> common
    (b) contains a descriptor/geography term -> common
    (c) two words and the first is not capitalised like a genus -> common
    otherwise scientific.
    """
    words = text.strip().split()
    if len(words) > 2:
        return True

    lowered = text.lower()
    if any(term in lowered for term in descriptors):
        return True

    if len(words) >= 2:
        first = words[0]
        if not first[0].isupper() or (len(first) > 1 and first[1].isupper()):
            return True

    return False


class NameClassifier:
    """Common-name heuristic bound to a descriptor vocabulary."""

    def __init__(self, vocabulary: Vocabulary):
        self.descriptors = vocabulary.common_name_descriptors

    def is_common_name(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        return is_likely_common_name(text, self.descriptors)
