"""
Text similarity strategies used by semantic search and similar-document lookup.

JaccardSimilarity compares the sets of word tokens of two texts and is the
default. CosineSimilarity compares term-frequency vectors with numpy.
"""
from abc import ABC, abstractmethod
from collections import Counter

import numpy as np

from ..core.logging_config import get_logger
from ..utils.keywords import tokenize

logger = get_logger(__name__)


class SimilarityStrategy(ABC):
    """Scores two texts between 0.0 (unrelated) and 1.0 (identical vocabulary)."""

    name: str = "base"

    @abstractmethod
    def score(self, text1: str, text2: str) -> float:
        pass


class JaccardSimilarity(SimilarityStrategy):
    """Intersection over union of the word sets of both texts."""

    name = "jaccard"

    def score(self, text1: str, text2: str) -> float:
        words1 = set(tokenize(text1))
        words2 = set(tokenize(text2))
        union = words1 | words2
        if not union:
            return 0.0
        return len(words1 & words2) / len(union)


class CosineSimilarity(SimilarityStrategy):
    """Cosine of the angle between the term-frequency vectors of both texts."""

    name = "cosine"

    def score(self, text1: str, text2: str) -> float:
        counts1 = Counter(tokenize(text1))
        counts2 = Counter(tokenize(text2))
        if not counts1 or not counts2:
            return 0.0

        vocabulary = sorted(set(counts1) | set(counts2))
        vec1_array = np.array([counts1.get(term, 0) for term in vocabulary], dtype=float)
        vec2_array = np.array([counts2.get(term, 0) for term in vocabulary], dtype=float)

        norm1 = np.linalg.norm(vec1_array)
        norm2 = np.linalg.norm(vec2_array)
        if norm1 == 0 or norm2 == 0:
            return 0.0

        similarity = np.dot(vec1_array, vec2_array) / (norm1 * norm2)
        # Counts are non-negative, so only float rounding can push this past 1
        return float(min(1.0, max(0.0, similarity)))


STRATEGIES = {
    JaccardSimilarity.name: JaccardSimilarity,
    CosineSimilarity.name: CosineSimilarity,
}


def get_similarity_strategy(name: str = "jaccard") -> SimilarityStrategy:
    """
    Create a similarity strategy by name.

    Unknown names fall back to Jaccard with a warning.
    """
    strategy_class = STRATEGIES.get((name or "").lower())
    if strategy_class is None:
        logger.warning(f"Unknown similarity strategy '{name}', using jaccard")
        strategy_class = JaccardSimilarity
    return strategy_class()
