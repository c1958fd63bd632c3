"""
Answer Evaluation Cache: reuse grading results for equivalent answers.

Lookup order for (question, answer):
1. Exact match on the trimmed answer text (no embedding, no evaluator call)
2. Embedding similarity against every cached answer for the question
3. Evaluator call, then best-effort write-back with TTL

Only the evaluator can fail a request. An unreachable embedding provider
disables step 2, an unreachable store disables steps 1-2 and the write-back.
"""

import math
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from quiz_eval.config.loader import AnswerCacheConfig
from quiz_eval.errors import (
    CacheUnavailableError,
    InvalidInputError,
    InvariantViolationError,
    QuizEvalError,
    UpstreamServiceError,
    ValidationError,
)
from quiz_eval.logging_config import logger
from quiz_eval.services.cache.health_checker import CacheHealthChecker
from quiz_eval.services.cache.keys import GLOBAL_KEY_PREFIX, answer_set_key
from quiz_eval.services.cache.models import (
    CacheStats,
    CachedAnswerRecord,
    Evaluation,
    QuizQuestion,
    Resolution,
)
from quiz_eval.services.cache.ports import AnswerEvaluator, EmbeddingProvider
from quiz_eval.services.cache.similarity import cosine_similarity, select_best_match
from quiz_eval.services.cache.singleflight import SingleFlight
from quiz_eval.services.cache.stats import CacheMetrics
from quiz_eval.services.cache.store import CacheStore


def normalize_answer(answer_text: str) -> str:
    """Trim surrounding whitespace. Case and punctuation are kept as typed."""
    return answer_text.strip()


class AnswerEvaluationCache:
    """
    Semantic cache in front of the answer evaluator.
    """

    def __init__(
        self,
        store: CacheStore,
        embedder: EmbeddingProvider,
        evaluator: AnswerEvaluator,
        similarity_threshold: float = 0.95,
        ttl_seconds: int = 86400,  # 24 hours
        single_flight: bool = True,
        key_prefix: str = GLOBAL_KEY_PREFIX,
        enable_stats: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be within [0, 1], got {similarity_threshold}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.store = store
        self.embedder = embedder
        self.evaluator = evaluator
        self.similarity_threshold = similarity_threshold
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self.metrics = CacheMetrics() if enable_stats else None
        self._flight = SingleFlight() if single_flight else None
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        store: CacheStore,
        embedder: EmbeddingProvider,
        evaluator: AnswerEvaluator,
        config: AnswerCacheConfig,
        **kwargs,
    ) -> "AnswerEvaluationCache":
        return cls(
            store=store,
            embedder=embedder,
            evaluator=evaluator,
            similarity_threshold=config.similarity_threshold,
            ttl_seconds=config.evaluation_ttl_seconds,
            single_flight=config.single_flight,
            key_prefix=config.key_prefix,
            **kwargs,
        )

    async def resolve(self, question: QuizQuestion, answer_text: str) -> Evaluation:
        """Evaluate an answer, reusing a cached evaluation when possible."""
        resolution = await self.resolve_with_details(question, answer_text)
        return resolution.evaluation

    async def resolve_with_details(self, question: QuizQuestion, answer_text: str) -> Resolution:
        """
        Like resolve(), but also reports where the evaluation came from.

        Raises:
            ValidationError: empty question id or answer text
            UpstreamServiceError: the evaluator failed
            InvariantViolationError: the evaluator returned scores outside [0, 1]
        """
        started = time.perf_counter()
        question_id, normalized = self._validate(question, answer_text)
        set_key = answer_set_key(question_id, prefix=self.key_prefix)

        record = await self._lookup_exact(set_key, question_id, normalized)
        if record is not None:
            logger.info("Answer cache hit: exact match", extra={"question_id": question_id})
            self._record(question_id, "exact", started)
            return Resolution(
                evaluation=record.evaluation,
                source="exact",
                similarity=1.0,
                matched_answer=record.answer_text,
            )

        async def compute() -> Resolution:
            return await self._resolve_uncached(question, answer_text, normalized, set_key)

        if self._flight is None:
            resolution = await compute()
        else:
            resolution, shared = await self._flight.do((question_id, normalized), compute)
            if shared:
                resolution = resolution.model_copy(update={"shared": True})

        self._record(question_id, resolution.source, started, shared=resolution.shared)
        return resolution

    def _validate(self, question: QuizQuestion, answer_text: Optional[str]) -> Tuple[str, str]:
        if question is None or not isinstance(question.id, str) or not question.id.strip():
            raise ValidationError("Question id is required", stage="validate")
        if answer_text is None or not isinstance(answer_text, str):
            raise ValidationError("Answer text is required", stage="validate")
        normalized = normalize_answer(answer_text)
        if not normalized:
            raise ValidationError("Answer text cannot be empty", stage="validate")
        return question.id, normalized

    async def _resolve_uncached(
        self,
        question: QuizQuestion,
        answer_text: str,
        normalized: str,
        set_key: str,
    ) -> Resolution:
        question_id = question.id
        embedding = await self._embed(question_id, normalized)

        records: List[CachedAnswerRecord] = []
        if embedding is not None:
            records = await self._load_records(set_key, question_id)
            match = self._find_similar(question_id, embedding, records)
            if match is not None:
                record, similarity = match
                logger.info(
                    "Answer cache hit: similar answer",
                    extra={"question_id": question_id, "similarity": similarity},
                )
                return Resolution(
                    evaluation=record.evaluation,
                    source="similar",
                    similarity=similarity,
                    matched_answer=record.answer_text,
                )

        evaluation = await self._evaluate(question, answer_text)

        if embedding is None:
            logger.warning(
                "Not caching evaluation without an embedding",
                extra={"question_id": question_id, "stage": "store"},
            )
        else:
            await self._store(set_key, question_id, normalized, embedding, evaluation, records)

        return Resolution(evaluation=evaluation, source="evaluator")

    def _decode(self, question_id: str, field_key: str, raw: str) -> Optional[CachedAnswerRecord]:
        try:
            record = CachedAnswerRecord.model_validate_json(raw)
            record.evaluation.ensure_valid()
        except (PydanticValidationError, InvariantViolationError) as e:
            logger.warning(
                "Skipping undecodable cached answer",
                extra={"question_id": question_id, "field": field_key, "error": str(e)},
            )
            return None
        return record

    async def _lookup_exact(self, set_key: str, question_id: str, normalized: str) -> Optional[CachedAnswerRecord]:
        try:
            raw = await self.store.get_field(set_key, normalized)
        except CacheUnavailableError as e:
            self._cache_failure("Answer cache read failed", question_id, e)
            return None
        if raw is None:
            return None

        record = self._decode(question_id, normalized, raw)
        if record is None or record.is_expired(self._clock(), self.ttl_seconds):
            return None
        return record

    async def _embed(self, question_id: str, normalized: str) -> Optional[List[float]]:
        try:
            embedding = await self.embedder.embed(normalized)
        except UpstreamServiceError as e:
            logger.warning(
                "Embedding failed, skipping similarity lookup",
                extra={
                    "question_id": question_id,
                    "stage": "embed",
                    "collaborator": "embedding_provider",
                    "error": str(e),
                },
            )
            if self.metrics:
                self.metrics.record_embedding_failure()
            return None
        except Exception as e:
            logger.error(
                "Unexpected embedding error, skipping similarity lookup",
                extra={
                    "question_id": question_id,
                    "stage": "embed",
                    "collaborator": "embedding_provider",
                    "error": str(e),
                },
            )
            if self.metrics:
                self.metrics.record_embedding_failure()
            return None

        try:
            vector = [float(x) for x in embedding or []]
        except (TypeError, ValueError):
            vector = []
        if not vector or not all(math.isfinite(x) for x in vector):
            logger.warning(
                "Embedding provider returned an unusable vector, skipping similarity lookup",
                extra={"question_id": question_id, "stage": "embed", "collaborator": "embedding_provider"},
            )
            if self.metrics:
                self.metrics.record_embedding_failure()
            return None
        return vector

    async def _load_records(self, set_key: str, question_id: str) -> List[CachedAnswerRecord]:
        try:
            raw_fields = await self.store.get_all_fields(set_key)
        except CacheUnavailableError as e:
            self._cache_failure("Answer cache scan failed", question_id, e)
            return []

        now = self._clock()
        records = []
        for field_key, raw in raw_fields.items():
            record = self._decode(question_id, field_key, raw)
            if record is None:
                continue
            if record.is_expired(now, self.ttl_seconds):
                logger.debug("Skipping expired cached answer", extra={"question_id": question_id})
                continue
            records.append(record)
        return records

    def _find_similar(
        self,
        question_id: str,
        embedding: List[float],
        records: List[CachedAnswerRecord],
    ) -> Optional[Tuple[CachedAnswerRecord, float]]:
        scored = []
        for record in records:
            try:
                similarity = cosine_similarity(embedding, record.embedding)
            except InvalidInputError as e:
                logger.error(
                    "Cached embedding cannot be compared with the answer embedding",
                    extra={"question_id": question_id, "stage": "similarity", "error": str(e)},
                )
                continue
            scored.append((record, similarity))

        best = select_best_match(scored)
        if best is None:
            return None
        if best[1] >= self.similarity_threshold:
            return best

        logger.debug(
            "Best similarity below threshold",
            extra={"question_id": question_id, "similarity": best[1], "threshold": self.similarity_threshold},
        )
        return None

    async def _evaluate(self, question: QuizQuestion, answer_text: str) -> Evaluation:
        try:
            evaluation = await self.evaluator.evaluate(question, answer_text)
        except UpstreamServiceError as e:
            e.stage = e.stage or "evaluate"
            e.collaborator = e.collaborator or "evaluator"
            logger.error("Answer evaluation failed", extra={"question_id": question.id, "error": str(e)})
            raise
        except QuizEvalError:
            raise
        except Exception as e:
            logger.error("Answer evaluation failed", extra={"question_id": question.id, "error": str(e)})
            raise UpstreamServiceError(
                "Failed to process with LLM service",
                stage="evaluate",
                collaborator="evaluator",
            ) from e

        try:
            return evaluation.ensure_valid()
        except InvariantViolationError as e:
            logger.error("Rejected out-of-range evaluation", extra={"question_id": question.id, "error": str(e)})
            raise

    async def _store(
        self,
        set_key: str,
        question_id: str,
        normalized: str,
        embedding: List[float],
        evaluation: Evaluation,
        records: List[CachedAnswerRecord],
    ) -> None:
        dimensions = {record.dimension for record in records}
        if dimensions and dimensions != {len(embedding)}:
            logger.error(
                "Embedding dimension differs from cached answers, not caching",
                extra={
                    "question_id": question_id,
                    "stage": "store",
                    "dimension": len(embedding),
                    "cached_dimensions": sorted(dimensions),
                },
            )
            return

        record = CachedAnswerRecord(
            question_id=question_id,
            answer_text=normalized,
            embedding=embedding,
            evaluation=evaluation,
            created_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )
        try:
            await self.store.set_field(set_key, normalized, record.model_dump_json(), self.ttl_seconds)
        except CacheUnavailableError as e:
            self._cache_failure("Answer cache write failed", question_id, e, write=True)
            return

        logger.info(
            "Answer evaluation cached",
            extra={"question_id": question_id, "ttl_seconds": self.ttl_seconds},
        )

    def _cache_failure(self, message: str, question_id: str, error: CacheUnavailableError, write: bool = False):
        logger.warning(
            message,
            extra={
                "question_id": question_id,
                "stage": error.stage,
                "collaborator": "cache_store",
                "error": str(error),
            },
        )
        if self.metrics:
            if write:
                self.metrics.record_write_failure()
            else:
                self.metrics.record_read_failure()

    def _record(self, question_id: str, source: str, started: float, shared: bool = False):
        if not self.metrics:
            return
        elapsed_ms = (time.perf_counter() - started) * 1000
        if source == "evaluator" and shared:
            self.metrics.record_coalesced(elapsed_ms)
        elif source == "evaluator":
            self.metrics.record_miss(elapsed_ms)
        else:
            self.metrics.record_hit(question_id, source, elapsed_ms)

    def get_stats(self) -> Optional[CacheStats]:
        """Get cache statistics."""
        if not self.metrics:
            return None
        return self.metrics.get_stats()

    async def health_check(self):
        """Check cache health status."""
        return await CacheHealthChecker.check_health(
            self.store,
            self.similarity_threshold,
            self.ttl_seconds,
        )

    async def close(self):
        """Close the cache store."""
        await self.store.close()


# Global instance management
_answer_cache: Optional[AnswerEvaluationCache] = None


async def get_answer_cache() -> AnswerEvaluationCache:
    """
    Get or create the global answer cache from settings and cache.yaml.
    """
    global _answer_cache
    if _answer_cache is None:
        from quiz_eval.config.loader import get_answer_cache_config
        from quiz_eval.config.settings import settings
        from quiz_eval.integrations.embeddings import build_embedding_provider
        from quiz_eval.integrations.evaluator import LLMAnswerEvaluator
        from quiz_eval.services.cache.store import create_cache_store

        config = get_answer_cache_config(settings.CACHE_CONFIG_PATH)
        store = await create_cache_store(
            backend=settings.CACHE_BACKEND,
            redis_url=settings.REDIS_URL,
            field_expiry=config.field_expiry,
        )
        _answer_cache = AnswerEvaluationCache.from_config(
            store=store,
            embedder=build_embedding_provider(settings, store, config),
            evaluator=LLMAnswerEvaluator.from_settings(settings),
            config=config,
        )
    return _answer_cache
