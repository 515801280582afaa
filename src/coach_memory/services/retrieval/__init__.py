from .engine import RelevanceRetriever, merge_unique
from .keywords import extract_keywords
from .strategies import (
    KeywordStrategy,
    RecencyStrategy,
    RetrievalStrategy,
    SimilarityStrategy,
    StrategySkipped,
)

__all__ = [
    "KeywordStrategy",
    "RecencyStrategy",
    "RelevanceRetriever",
    "RetrievalStrategy",
    "SimilarityStrategy",
    "StrategySkipped",
    "extract_keywords",
    "merge_unique",
]
