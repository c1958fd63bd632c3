"""Semantic cache for LLM-graded quiz answers."""

from quiz_eval.services.cache import (
    AnswerEvaluationCache,
    Evaluation,
    QuizQuestion,
    Resolution,
    cosine_similarity,
    get_answer_cache,
)

__version__ = "0.1.0"

__all__ = [
    "AnswerEvaluationCache",
    "Evaluation",
    "QuizQuestion",
    "Resolution",
    "cosine_similarity",
    "get_answer_cache",
]
