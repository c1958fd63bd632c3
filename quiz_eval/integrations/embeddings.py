import json
import math
from typing import List

import openai

from quiz_eval.config.loader import AnswerCacheConfig
from quiz_eval.config.settings import Settings
from quiz_eval.errors import CacheUnavailableError, MalformedResponseError, ValidationError
from quiz_eval.integrations.llm import get_embedding_client, translate_openai_error
from quiz_eval.logging_config import logger
from quiz_eval.services.cache.keys import GLOBAL_KEY_PREFIX, embedding_key
from quiz_eval.services.cache.ports import EmbeddingProvider
from quiz_eval.services.cache.singleflight import SingleFlight
from quiz_eval.services.cache.store import CacheStore


class OpenAIEmbeddingProvider:
    """
    Embeddings through the OpenAI API or any OpenAI-compatible server (Ollama).
    """

    def __init__(self, client, model: str = "text-embedding-3-small", source: str = "openai"):
        self.client = client
        self.model = model
        self.source = source

    async def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValidationError("Input text cannot be empty for embedding", stage="embed")

        text = text.replace("\n", " ")
        try:
            response = await self.client.embeddings.create(input=[text], model=self.model)
        except openai.APIError as e:
            raise translate_openai_error(e, stage="embed", collaborator=f"embedding_provider:{self.source}") from e

        if not response.data or not response.data[0].embedding:
            raise MalformedResponseError(
                f"Received empty embedding data from {self.source}",
                stage="embed",
                collaborator=f"embedding_provider:{self.source}",
            )
        return list(response.data[0].embedding)


class CachedEmbeddingProvider:
    """
    Wraps a provider with a key/value cache keyed by a hash of the text.

    Concurrent requests for the same uncached text share one provider call.
    Cache failures are logged and ignored; provider failures propagate.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        store: CacheStore,
        ttl_seconds: int = 604800,  # 7 days
        key_prefix: str = GLOBAL_KEY_PREFIX,
    ):
        self.provider = provider
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self.source = provider.source
        self._flight = SingleFlight()

    async def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValidationError("Input text cannot be empty for embedding", stage="embed")

        key = embedding_key(self.source, text, prefix=self.key_prefix)
        cached = await self._read(key)
        if cached is not None:
            return cached

        embedding, _ = await self._flight.do(key, lambda: self._fetch_and_store(key, text))
        return embedding

    async def _read(self, key: str):
        try:
            raw = await self.store.get(key)
        except CacheUnavailableError as e:
            logger.warning("Embedding cache read failed", extra={"key": key, "error": str(e)})
            return None
        if raw is None:
            return None

        try:
            embedding = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Failed to decode cached embedding", extra={"key": key})
            return None
        if not isinstance(embedding, list) or not embedding:
            logger.warning("Cached embedding is empty or not a list", extra={"key": key})
            return None
        try:
            vector = [float(x) for x in embedding]
        except (TypeError, ValueError):
            logger.warning("Cached embedding is not numeric", extra={"key": key})
            return None
        if not all(math.isfinite(x) for x in vector):
            logger.warning("Cached embedding contains NaN or infinite values", extra={"key": key})
            return None
        return vector

    async def _fetch_and_store(self, key: str, text: str) -> List[float]:
        embedding = await self.provider.embed(text)
        try:
            await self.store.set(key, json.dumps(embedding), self.ttl_seconds)
        except CacheUnavailableError as e:
            logger.warning("Embedding cache write failed", extra={"key": key, "error": str(e)})
        else:
            logger.debug("Embedding cached", extra={"key": key, "ttl_seconds": self.ttl_seconds})
        return embedding


def build_embedding_provider(settings: Settings, store: CacheStore, config: AnswerCacheConfig) -> CachedEmbeddingProvider:
    """Provider for the configured EMBEDDING_SOURCE, behind the embedding cache."""
    provider = OpenAIEmbeddingProvider(
        get_embedding_client(settings),
        model=settings.EMBEDDING_MODEL,
        source=settings.EMBEDDING_SOURCE,
    )
    return CachedEmbeddingProvider(
        provider,
        store,
        ttl_seconds=config.embedding_ttl_seconds,
        key_prefix=config.key_prefix,
    )
