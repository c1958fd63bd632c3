"""
Unit tests for the cache models and metrics.

Tests:
- Cache metrics
- Evaluation score validation
- Cached record serialization and expiry
"""

from datetime import datetime, timezone

import pytest

from conftest import make_evaluation
from quiz_eval.errors import InvariantViolationError
from quiz_eval.services.cache.models import CachedAnswerRecord, Evaluation, Resolution
from quiz_eval.services.cache.stats import CacheMetrics


class TestCacheMetrics:
    """Test cache metrics collection."""

    def test_metrics_initialization(self):
        """Test metrics initialization."""
        metrics = CacheMetrics()
        assert metrics.total_requests == 0
        assert metrics.exact_hits == 0
        assert metrics.cache_misses == 0

    def test_record_hit(self):
        """Test recording cache hits."""
        metrics = CacheMetrics()
        metrics.record_hit("q-1", "exact", 5.0)
        metrics.record_hit("q-1", "similar", 5.0)

        stats = metrics.get_stats()
        assert stats.exact_hits == 1
        assert stats.similar_hits == 1
        assert stats.cache_hits == 2
        assert stats.total_requests == 2

    def test_record_miss(self):
        """Test recording cache misses."""
        metrics = CacheMetrics()
        metrics.record_miss(850.0)

        assert metrics.cache_misses == 1
        assert metrics.total_requests == 1

    def test_record_coalesced(self):
        """Coalesced requests are neither hits nor misses."""
        metrics = CacheMetrics()
        metrics.record_miss(900.0)
        metrics.record_coalesced(900.0)

        stats = metrics.get_stats()
        assert stats.total_requests == 2
        assert stats.cache_misses == 1
        assert stats.coalesced_requests == 1
        assert stats.hit_rate == 0.0

    def test_hit_rate_calculation(self):
        """Test hit rate calculation."""
        metrics = CacheMetrics()
        # 7 hits, 3 misses = 70% hit rate
        for _ in range(4):
            metrics.record_hit("q", "exact", 5.0)
        for _ in range(3):
            metrics.record_hit("q", "similar", 20.0)
        for _ in range(3):
            metrics.record_miss(850.0)

        stats = metrics.get_stats()
        assert stats.hit_rate == 70.0

    def test_average_response_time(self):
        """Test average response time calculation."""
        metrics = CacheMetrics()
        metrics.record_hit("q1", "exact", 5.0)
        metrics.record_hit("q2", "exact", 5.0)
        metrics.record_miss(850.0)
        metrics.record_miss(900.0)

        stats = metrics.get_stats()
        assert stats.avg_response_time_cached == 5.0
        assert stats.avg_response_time_full == 875.0

    def test_most_hit_questions(self):
        """Test tracking questions with the most cache hits."""
        metrics = CacheMetrics(max_top_questions=2)
        for _ in range(3):
            metrics.record_hit("goroutines", "exact", 5.0)
        metrics.record_hit("channels", "similar", 5.0)
        metrics.record_hit("channels", "exact", 5.0)
        metrics.record_hit("interfaces", "exact", 5.0)

        top_questions = metrics.get_stats().most_hit_questions

        assert len(top_questions) == 2
        assert top_questions[0] == {"question_id": "goroutines", "hits": 3}
        assert top_questions[1]["hits"] == 2

    def test_time_savings_calculation(self):
        """Test time savings calculation."""
        metrics = CacheMetrics()
        # 5 hits at 5ms, 5 misses at 1000ms
        for _ in range(5):
            metrics.record_hit("q", "exact", 5.0)
        for _ in range(5):
            metrics.record_miss(1000.0)

        stats = metrics.get_stats()
        # Each hit saves 0.995s
        assert stats.savings_time == pytest.approx(4.975, abs=0.01)

    def test_failure_counters(self):
        metrics = CacheMetrics()
        metrics.record_embedding_failure()
        metrics.record_read_failure()
        metrics.record_read_failure()
        metrics.record_write_failure()

        stats = metrics.get_stats()
        assert stats.embedding_failures == 1
        assert stats.cache_read_failures == 2
        assert stats.cache_write_failures == 1

    def test_reset(self):
        metrics = CacheMetrics()
        metrics.record_hit("q", "exact", 5.0)
        metrics.reset()
        assert metrics.get_stats().total_requests == 0

    def test_summary(self):
        metrics = CacheMetrics()
        metrics.record_hit("q-7", "exact", 5.0)
        summary = metrics.get_summary()
        assert "Total Requests: 1" in summary
        assert "q-7 (1 hits)" in summary


class TestEvaluation:
    """Test Evaluation validation."""

    def test_valid_evaluation(self):
        evaluation = make_evaluation(0.8)
        assert evaluation.ensure_valid() is evaluation

    def test_boundaries_allowed(self):
        Evaluation(score=0.0, completeness=1.0, relevance=0.0, accuracy=1.0).ensure_valid()

    @pytest.mark.parametrize("field", ["score", "completeness", "relevance", "accuracy"])
    def test_out_of_range_rejected(self, field):
        evaluation = make_evaluation().model_copy(update={field: 1.01})
        with pytest.raises(InvariantViolationError) as exc_info:
            evaluation.ensure_valid()
        assert field in str(exc_info.value)

    def test_nan_rejected(self):
        with pytest.raises(InvariantViolationError):
            Evaluation(score=float("nan")).ensure_valid()


class TestCachedAnswerRecord:
    """Test CachedAnswerRecord model."""

    def test_serialization(self):
        """Test JSON serialization of a cached record."""
        record = CachedAnswerRecord(
            question_id="q-1",
            answer_text="A lightweight thread",
            embedding=[0.1, 0.2, 0.3],
            evaluation=make_evaluation(0.9, "Correct"),
        )

        json_str = record.model_dump_json()
        assert "answer_text" in json_str

        restored = CachedAnswerRecord.model_validate_json(json_str)
        assert restored == record
        assert restored.dimension == 3

    def test_empty_embedding_rejected(self):
        with pytest.raises(ValueError):
            CachedAnswerRecord(question_id="q-1", answer_text="a", embedding=[], evaluation=make_evaluation())

    def test_is_expired(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        record = CachedAnswerRecord(
            question_id="q-1",
            answer_text="a",
            embedding=[1.0],
            evaluation=make_evaluation(),
            created_at=created,
        )
        assert not record.is_expired(created.timestamp() + 59, 60)
        assert record.is_expired(created.timestamp() + 60, 60)


class TestResolution:
    """Test Resolution model."""

    def test_cache_hit(self):
        evaluation = make_evaluation()
        assert Resolution(evaluation=evaluation, source="exact").cache_hit
        assert Resolution(evaluation=evaluation, source="similar").cache_hit
        assert not Resolution(evaluation=evaluation, source="evaluator").cache_hit
