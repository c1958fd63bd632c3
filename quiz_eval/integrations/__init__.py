from quiz_eval.integrations.embeddings import (
    CachedEmbeddingProvider,
    OpenAIEmbeddingProvider,
    build_embedding_provider,
)
from quiz_eval.integrations.evaluator import LLMAnswerEvaluator, parse_evaluation_response
from quiz_eval.integrations.llm import get_llm

__all__ = [
    "CachedEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "build_embedding_provider",
    "LLMAnswerEvaluator",
    "parse_evaluation_response",
    "get_llm",
]
