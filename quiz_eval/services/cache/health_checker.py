from typing import Any, Dict

from quiz_eval.errors import CacheUnavailableError


class CacheHealthChecker:
    @staticmethod
    async def check_health(
        store,
        similarity_threshold: float,
        ttl_seconds: int,
    ) -> Dict[str, Any]:
        """
        Check cache health status.

        The in-memory fallback reports "degraded", a store that fails to answer
        reports "unavailable". Requests succeed in both cases.
        """
        report: Dict[str, Any] = {
            "backend": store.backend,
            "similarity_threshold": similarity_threshold,
            "ttl_seconds": ttl_seconds,
        }
        try:
            await store.ping()
            report["status"] = "healthy" if store.backend == "redis" else "degraded"
        except CacheUnavailableError as e:
            report["status"] = "unavailable"
            report["error"] = str(e)
        return report
