import asyncio
from typing import Dict, List, Optional

import pytest

from quiz_eval.errors import CacheUnavailableError
from quiz_eval.services.cache.manager import AnswerEvaluationCache
from quiz_eval.services.cache.memory_store import InMemoryCacheStore
from quiz_eval.services.cache.models import Evaluation, QuizQuestion


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeEmbedder:
    """Returns the configured vector for each text."""
    source = "fake"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, error: Optional[Exception] = None):
        self.vectors = vectors or {}
        self.error = error
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vectors[text])


class FakeEvaluator:
    """Returns canned evaluations and counts calls; can be held open with a gate."""

    def __init__(self, evaluations: Optional[Dict[str, Evaluation]] = None, error: Optional[Exception] = None):
        self.evaluations = evaluations or {}
        self.error = error
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    async def evaluate(self, question: QuizQuestion, answer_text: str) -> Evaluation:
        self.calls.append(answer_text)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.evaluations.get(answer_text.strip()) or make_evaluation(0.5, f"graded: {answer_text.strip()}")


class FailingStore:
    """Store whose backend is always down."""
    backend = "redis"

    async def get(self, key):
        raise CacheUnavailableError("down", stage="get", collaborator="cache_store")

    async def set(self, key, value, ttl_seconds):
        raise CacheUnavailableError("down", stage="setex", collaborator="cache_store")

    async def get_field(self, set_key, field_key):
        raise CacheUnavailableError("down", stage="hget", collaborator="cache_store")

    async def get_all_fields(self, set_key):
        raise CacheUnavailableError("down", stage="hgetall", collaborator="cache_store")

    async def set_field(self, set_key, field_key, value, ttl_seconds):
        raise CacheUnavailableError("down", stage="hset", collaborator="cache_store")

    async def ping(self):
        raise CacheUnavailableError("down", stage="ping", collaborator="cache_store")

    async def close(self):
        pass


def make_evaluation(score: float = 0.8, explanation: str = "Good answer") -> Evaluation:
    return Evaluation(
        score=score,
        explanation=explanation,
        keyword_matches=["goroutine"],
        completeness=score,
        relevance=1.0,
        accuracy=score,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def question():
    return QuizQuestion(
        id="q-1",
        question="What is a goroutine?",
        model_answers=["A lightweight thread managed by the Go runtime."],
        keywords=["goroutine", "runtime"],
    )


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def evaluator():
    return FakeEvaluator()


@pytest.fixture
def cache(store, embedder, evaluator, clock):
    return AnswerEvaluationCache(
        store=store,
        embedder=embedder,
        evaluator=evaluator,
        similarity_threshold=0.9,
        ttl_seconds=3600,
        clock=clock,
    )
