"""
Lexical similarity helpers for duplicate detection and keyword search.
"""

import re
from typing import Callable, List, Optional, Sequence, Set

from pymemoria.data.schemas.models import Memory

_NON_WORD = re.compile(r"\W+")

DUPLICATE_THRESHOLD = 0.8


def tokenize(text: str) -> Set[str]:
    """Lowercase word set of a text, split on non-word characters."""
    return {token for token in _NON_WORD.split(text.lower()) if token}


def jaccard_similarity(text1: str, text2: str) -> float:
    """
    Jaccard index of the word sets of two texts.

    Args:
        text1: First text
        text2: Second text

    Returns:
        Similarity score (0.0-1.0); 0.0 if either text has no words
    """
    words1 = tokenize(text1)
    words2 = tokenize(text2)

    if not words1 or not words2:
        return 0.0

    intersection = len(words1 & words2)
    union = len(words1 | words2)

    return intersection / union if union > 0 else 0.0


def count_term_matches(text: str, term: str) -> int:
    """Case-insensitive, non-overlapping substring count of term in text."""
    term = term.strip().lower()
    if not term:
        return 0
    return text.lower().count(term)


class DuplicateDetector:
    """
    Finds stored memories lexically similar enough to a new one to conflict.
    """

    def __init__(
        self,
        similarity_threshold: float = DUPLICATE_THRESHOLD,
        similarity_fn: Optional[Callable[[str, str], float]] = None
    ):
        """
        Initialize the detector.

        Args:
            similarity_threshold: Scores strictly above this are conflicts
            similarity_fn: Function to compute similarity between texts
        """
        self.threshold = similarity_threshold
        self._similarity_fn = similarity_fn or jaccard_similarity

    def find_conflicts(self, memories: Sequence[Memory], target: Memory) -> List[Memory]:
        """
        Find memories that conflict with a target.

        Args:
            memories: Existing memories (normally one category)
            target: Newly created memory

        Returns:
            Conflicting memories, in input order
        """
        target_text = target.text()
        return [
            memory for memory in memories
            if memory.id != target.id
            and self._similarity_fn(memory.text(), target_text) > self.threshold
        ]
