"""
Answer evaluation cache module.

This module decides whether a stored evaluation can be reused for a
(question, answer) pair and writes fresh evaluations back:
- AnswerEvaluationCache: exact match, similarity scan, evaluator fallback
- Stores: Redis (shared) and in-memory (fallback / tests)
- Similarity: cosine comparison and best-match selection
"""

from .manager import AnswerEvaluationCache, get_answer_cache, normalize_answer
from .memory_store import InMemoryCacheStore
from .models import CachedAnswerRecord, CacheStats, Evaluation, QuizQuestion, Resolution
from .ports import AnswerEvaluator, EmbeddingProvider
from .redis_client import RedisConnector
from .similarity import cosine_similarity, select_best_match
from .singleflight import SingleFlight
from .store import CacheStore, create_cache_store

__all__ = [
    "AnswerEvaluationCache",
    "get_answer_cache",
    "normalize_answer",
    "InMemoryCacheStore",
    "RedisConnector",
    "CacheStore",
    "create_cache_store",
    "CachedAnswerRecord",
    "CacheStats",
    "Evaluation",
    "QuizQuestion",
    "Resolution",
    "AnswerEvaluator",
    "EmbeddingProvider",
    "cosine_similarity",
    "select_best_match",
    "SingleFlight",
]
