"""
Answer cache metrics and statistics tracking.

Monitors:
- Exact and similarity hit rates
- Response time improvements
- Degraded operation (embedding provider or cache store down)
- Questions answered most often from cache
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List

from quiz_eval.services.cache.models import CacheStats


class CacheMetrics:
    """
    In-process answer cache metrics collector.

    Example:
        metrics = CacheMetrics(max_top_questions=5)

        # Identical answer text served from cache
        metrics.record_hit("q-42", "exact", response_time_ms=1.8)

        # Evaluator had to be called
        metrics.record_miss(response_time_ms=2100)
    """

    def __init__(self, max_top_questions: int = 5):
        """
        Initialize metrics collector.

        Args:
            max_top_questions: Keep track of top N questions (default 5)
        """
        self.max_top_questions = max_top_questions
        self.reset()

    def record_hit(self, question_id: str, kind: str, response_time_ms: float):
        """
        Record a cache hit.

        Args:
            question_id: Question whose cached evaluation was reused
            kind: "exact" or "similar"
            response_time_ms: Response time in milliseconds
        """
        self.total_requests += 1
        if kind == "exact":
            self.exact_hits += 1
        else:
            self.similar_hits += 1
        self.cached_response_times.append(response_time_ms)
        self.question_hit_counts[question_id] += 1

    def record_miss(self, response_time_ms: float):
        """Record a request that went to the evaluator."""
        self.total_requests += 1
        self.cache_misses += 1
        self.full_response_times.append(response_time_ms)

    def record_coalesced(self, response_time_ms: float):
        """Record a request that waited on an identical in-flight evaluation."""
        self.total_requests += 1
        self.coalesced_requests += 1
        self.full_response_times.append(response_time_ms)

    def record_embedding_failure(self):
        self.embedding_failures += 1

    def record_read_failure(self):
        self.cache_read_failures += 1

    def record_write_failure(self):
        self.cache_write_failures += 1

    def get_stats(self) -> CacheStats:
        """
        Get current cache statistics.

        Returns:
            CacheStats object with all metrics
        """
        hits = self.exact_hits + self.similar_hits
        hit_rate = 0.0
        if self.total_requests > 0:
            hit_rate = (hits / self.total_requests) * 100

        avg_cached_time = 0.0
        if self.cached_response_times:
            avg_cached_time = sum(self.cached_response_times) / len(self.cached_response_times)

        avg_full_time = 0.0
        if self.full_response_times:
            avg_full_time = sum(self.full_response_times) / len(self.full_response_times)

        time_per_hit_saved = max(avg_full_time - avg_cached_time, 0.0) / 1000  # ms to seconds
        total_time_saved = hits * time_per_hit_saved

        top_questions: List[Dict[str, object]] = []
        if self.question_hit_counts:
            sorted_questions = sorted(
                self.question_hit_counts.items(),
                key=lambda x: x[1],
                reverse=True
            )
            top_questions = [
                {"question_id": question_id, "hits": count}
                for question_id, count in sorted_questions[:self.max_top_questions]
            ]

        return CacheStats(
            total_requests=self.total_requests,
            exact_hits=self.exact_hits,
            similar_hits=self.similar_hits,
            cache_misses=self.cache_misses,
            coalesced_requests=self.coalesced_requests,
            hit_rate=round(hit_rate, 2),
            avg_response_time_cached=round(avg_cached_time, 2),
            avg_response_time_full=round(avg_full_time, 2),
            savings_time=round(total_time_saved, 2),
            embedding_failures=self.embedding_failures,
            cache_read_failures=self.cache_read_failures,
            cache_write_failures=self.cache_write_failures,
            most_hit_questions=top_questions,
        )

    def reset(self):
        """Reset all metrics (useful for periodic reporting)."""
        self.total_requests = 0
        self.exact_hits = 0
        self.similar_hits = 0
        self.cache_misses = 0
        self.coalesced_requests = 0
        self.embedding_failures = 0
        self.cache_read_failures = 0
        self.cache_write_failures = 0
        self.cached_response_times: List[float] = []
        self.full_response_times: List[float] = []
        self.question_hit_counts: Dict[str, int] = defaultdict(int)
        self.stats_start_time = datetime.now(timezone.utc)

    def get_summary(self) -> str:
        """
        Get a human-readable summary of cache performance.

        Example:
            summary = metrics.get_summary()
            # Answer Cache Summary
            # ─────────────────────────────
            # Total Requests: 100
            # Cache Hits: 45 (45.00%) - exact 30, similar 15
            # ...
        """
        stats = self.get_stats()

        summary = (
            "Answer Cache Summary\n"
            "─────────────────────────────\n"
            f"Total Requests: {stats.total_requests}\n"
            f"Cache Hits: {stats.cache_hits} ({stats.hit_rate:.2f}%) - "
            f"exact {stats.exact_hits}, similar {stats.similar_hits}\n"
            f"Cache Misses: {stats.cache_misses}\n"
            f"Coalesced: {stats.coalesced_requests}\n"
            f"Avg Cached Response: {stats.avg_response_time_cached:.2f}ms\n"
            f"Avg Evaluator Response: {stats.avg_response_time_full:.2f}ms\n"
            f"Time Saved: {stats.savings_time:.2f}s\n"
            f"Embedding Failures: {stats.embedding_failures}\n"
            f"Store Failures: {stats.cache_read_failures} read, {stats.cache_write_failures} write\n"
        )

        if stats.most_hit_questions:
            summary += "\nTop Questions:\n"
            for i, q in enumerate(stats.most_hit_questions, 1):
                summary += f"  {i}. {q['question_id']} ({q['hits']} hits)\n"

        return summary
