"""
LLM-backed answer evaluator.

Grades a free-text answer against the question's model answers and keywords
and parses the model's JSON verdict into an Evaluation. Score ranges are not
checked here; the answer cache rejects out-of-range results before caching.
"""

import asyncio
import json
import re
from typing import Any

import openai
from langfuse import observe
from pydantic import ValidationError as PydanticValidationError

from quiz_eval.config.settings import Settings
from quiz_eval.errors import MalformedResponseError, UpstreamUnavailableError
from quiz_eval.integrations.llm import get_llm, translate_openai_error
from quiz_eval.integrations.prompts import EVALUATION_PROMPT
from quiz_eval.logging_config import logger
from quiz_eval.services.cache.models import Evaluation, QuizQuestion

THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)


def build_evaluation_prompt(question: QuizQuestion, answer_text: str) -> str:
    return EVALUATION_PROMPT.format(
        question=question.question,
        model_answer="\n".join(question.model_answers),
        user_answer=answer_text,
        keywords=", ".join(question.keywords),
    )


def _message_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts = [part.get("text", "") if isinstance(part, dict) else str(part) for part in content]
        return "".join(parts)
    return str(content)


def parse_evaluation_response(raw: str) -> Evaluation:
    """
    Extract the evaluation JSON from a model reply.

    Handles <think> blocks, Markdown code fences and prose around the object
    by taking everything between the first "{" and the last "}".
    """
    cleaned = THINK_BLOCK.sub("", raw or "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise MalformedResponseError(
            "No JSON object found in LLM response",
            stage="parse",
            collaborator="evaluator",
        )

    try:
        payload = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            "Failed to decode JSON from LLM response",
            stage="parse",
            collaborator="evaluator",
        ) from e

    if not isinstance(payload, dict):
        raise MalformedResponseError("LLM response is not a JSON object", stage="parse", collaborator="evaluator")
    if payload.get("keyword_matches") is None:
        payload["keyword_matches"] = []

    try:
        return Evaluation.model_validate(payload)
    except PydanticValidationError as e:
        raise MalformedResponseError(
            "LLM response does not match the evaluation format",
            stage="parse",
            collaborator="evaluator",
        ) from e


class LLMAnswerEvaluator:
    """
    Evaluates answers with a chat model (OpenAI, or Ollama via EVALUATOR_BASE_URL).

    No retries: callers decide whether a failed evaluation is worth repeating.
    """

    def __init__(self, llm):
        self.llm = llm

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMAnswerEvaluator":
        api_key = settings.OPENAI_API_KEY
        if settings.EVALUATOR_BASE_URL and not api_key:
            api_key = "ollama"
        llm = get_llm(
            model=settings.EVALUATOR_MODEL,
            json_mode=not settings.EVALUATOR_BASE_URL,
            api_key=api_key,
            base_url=settings.EVALUATOR_BASE_URL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
        return cls(llm)

    @observe(name="evaluate_answer", as_type="generation")
    async def evaluate(self, question: QuizQuestion, answer_text: str) -> Evaluation:
        logger.info(
            "Evaluating answer with LLM",
            extra={"question_id": question.id, "keywords": question.keywords},
        )
        prompt = build_evaluation_prompt(question, answer_text)

        try:
            response = await self.llm.ainvoke(prompt)
        except openai.APIError as e:
            raise translate_openai_error(e, stage="evaluate", collaborator="evaluator") from e
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailableError("LLM request timed out", stage="evaluate", collaborator="evaluator") from e

        raw = _message_text(response)
        logger.debug("Raw LLM response received", extra={"question_id": question.id, "raw_response": raw})
        try:
            evaluation = parse_evaluation_response(raw)
        except MalformedResponseError:
            logger.error(
                "Could not parse LLM evaluation",
                extra={"question_id": question.id, "raw_response": raw[:500]},
            )
            raise

        logger.info("Successfully parsed LLM evaluation", extra={"question_id": question.id, "score": evaluation.score})
        return evaluation
