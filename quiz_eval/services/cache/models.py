"""
Pydantic models for answer evaluations, cached records and statistics.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from quiz_eval.errors import InvariantViolationError

SCORE_FIELDS = ("score", "completeness", "relevance", "accuracy")


class QuizQuestion(BaseModel):
    """The question an answer is graded against."""
    id: str = Field(..., description="Opaque question identifier")
    question: str = Field(..., description="Question text shown to the user")
    model_answers: List[str] = Field(default_factory=list, description="Reference answers")
    keywords: List[str] = Field(default_factory=list, description="Keywords the answer should mention")


class Evaluation(BaseModel):
    """
    Structured result of grading one answer.

    Ranges are not enforced on construction so that a misbehaving evaluator
    can be detected and rejected with `ensure_valid()` before anything is cached.

    Example:
        Evaluation(
            score=0.8,
            explanation="Covers the main idea, misses the edge case.",
            keyword_matches=["goroutine", "channel"],
            completeness=0.7,
            relevance=1.0,
            accuracy=0.9
        )
    """
    score: float = Field(..., description="Overall score (0-1)")
    explanation: str = Field(default="", description="Short grading rationale")
    keyword_matches: List[str] = Field(default_factory=list, description="Expected keywords found in the answer")
    completeness: float = Field(default=0.0, description="How fully the answer covers the question (0-1)")
    relevance: float = Field(default=0.0, description="How on-topic the answer is (0-1)")
    accuracy: float = Field(default=0.0, description="Factual correctness against the model answers (0-1)")

    def ensure_valid(self) -> "Evaluation":
        """Raise InvariantViolationError unless every score is a finite value in [0, 1]."""
        for name in SCORE_FIELDS:
            value = getattr(self, name)
            if not math.isfinite(value) or not 0.0 <= value <= 1.0:
                raise InvariantViolationError(
                    f"Evaluator returned {name}={value!r}, expected a value in [0, 1]",
                    stage="validate",
                    collaborator="evaluator",
                )
        return self


class CachedAnswerRecord(BaseModel):
    """
    One previously evaluated answer for one question.

    Stored as JSON under the question's hash key with the normalized answer
    text as field name, so the store stays human-inspectable.
    """
    question_id: str
    answer_text: str = Field(..., description="Exact normalized text that produced this record")
    embedding: List[float] = Field(..., min_length=1)
    evaluation: Evaluation
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def dimension(self) -> int:
        return len(self.embedding)

    def is_expired(self, now: float, ttl_seconds: int) -> bool:
        return self.created_at.timestamp() + ttl_seconds <= now


class Resolution(BaseModel):
    """How an evaluation was obtained."""
    evaluation: Evaluation
    source: Literal["exact", "similar", "evaluator"]
    similarity: Optional[float] = None
    matched_answer: Optional[str] = None
    shared: bool = Field(default=False, description="Result was produced by a concurrent identical request")

    @property
    def cache_hit(self) -> bool:
        return self.source != "evaluator"


class CacheStats(BaseModel):
    """
    Answer cache statistics.

    Tracks:
    - Exact / similarity hit rates
    - Response time improvements
    - Degraded operation (embedding and store failures)
    - Questions with the most cache hits
    """
    total_requests: int = Field(default=0, description="Total resolve calls")
    exact_hits: int = Field(default=0, description="Hits on identical answer text")
    similar_hits: int = Field(default=0, description="Hits via embedding similarity")
    cache_misses: int = Field(default=0, description="Requests that called the evaluator")
    coalesced_requests: int = Field(default=0, description="Requests that shared an in-flight evaluation")
    hit_rate: float = Field(default=0.0, description="Hit rate percentage (0-100)")
    avg_response_time_cached: float = Field(default=0.0, description="Average cached response time (ms)")
    avg_response_time_full: float = Field(default=0.0, description="Average evaluator response time (ms)")
    savings_time: float = Field(default=0.0, description="Total time saved by caching (seconds)")
    embedding_failures: int = Field(default=0)
    cache_read_failures: int = Field(default=0)
    cache_write_failures: int = Field(default=0)
    most_hit_questions: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Top questions by cache hits"
    )

    @property
    def cache_hits(self) -> int:
        return self.exact_hits + self.similar_hits
