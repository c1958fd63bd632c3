"""
Collaborator contracts consumed by the answer cache.

Implementations translate their library errors into quiz_eval.errors:
UpstreamUnavailableError, RateLimitedError or MalformedResponseError.
"""

from typing import List, Protocol, runtime_checkable

from quiz_eval.services.cache.models import Evaluation, QuizQuestion


@runtime_checkable
class EmbeddingProvider(Protocol):
    source: str

    async def embed(self, text: str) -> List[float]:
        ...


@runtime_checkable
class AnswerEvaluator(Protocol):
    async def evaluate(self, question: QuizQuestion, answer_text: str) -> Evaluation:
        ...
