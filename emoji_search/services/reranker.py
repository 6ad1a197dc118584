"""
LLM re-ranking of emoji candidates.

The model filters and orders the vector-search candidates against the
query. Its output is constrained by a strict JSON schema
(``{"emojis": string[]}``) so it can be parsed without free-text handling,
and the call is bounded by a hard timeout after which it counts as failed.

The output is still untrusted: callers must pass it through
``sanitize_emojis`` before caching or returning it.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from emoji_search.core.config import Settings
from emoji_search.core.errors import UpstreamUnavailable
from emoji_search.core.logging import get_logger
from emoji_search.core.metrics import search_stage_duration_seconds
from emoji_search.core.resilience import call_with_breaker, gateway_breaker
from emoji_search.services.emoji_vocabulary import Candidate
from emoji_search.services.prompts import system_prompt, user_prompt
from openai import AsyncOpenAI, OpenAIError
from pybreaker import CircuitBreakerError
from pydantic import BaseModel, ValidationError

logger = get_logger(__name__)

RERANK_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "emojis": {
            "type": "array",
            "items": {"type": "string"},
        },
    },
    "required": ["emojis"],
    "additionalProperties": False,
}


class RerankOutput(BaseModel):
    """Parsed rerank response."""

    emojis: List[str]


@dataclass
class RerankerConfig:
    """Configuration for the LLM reranker."""

    model: str = "openai/gpt-oss-120b"
    timeout_sec: float = 10.0
    temperature: float = 0.1
    reasoning_effort: Optional[str] = "low"
    provider_order: List[str] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RerankerConfig":
        return cls(
            model=settings.RERANK_MODEL,
            timeout_sec=settings.RERANK_TIMEOUT_SEC,
            temperature=settings.RERANK_TEMPERATURE,
            reasoning_effort=settings.RERANK_REASONING_EFFORT,
            provider_order=list(settings.RERANK_PROVIDER_ORDER),
        )


class LLMReranker:
    """Filters and orders candidates with a chat completion call."""

    def __init__(self, client: AsyncOpenAI, config: Optional[RerankerConfig] = None):
        self.client = client
        self.config = config or RerankerConfig()

    @property
    def model(self) -> str:
        return self.config.model

    def build_request(self, query: str, candidates: Sequence[Candidate]) -> Dict[str, Any]:
        """Chat completion parameters for one rerank call."""
        params: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt()},
                {"role": "user", "content": user_prompt(query, candidates)},
            ],
            "temperature": self.config.temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": "emoji_rerank",
                    "strict": True,
                    "schema": RERANK_RESPONSE_SCHEMA,
                },
            },
        }
        if self.config.reasoning_effort:
            params["reasoning_effort"] = self.config.reasoning_effort
        if self.config.provider_order:
            params["extra_body"] = {"providerOptions": {"gateway": {"order": self.config.provider_order}}}
        return params

    async def rerank(self, query: str, candidates: Sequence[Candidate]) -> List[str]:
        """Return candidate glyphs, most to least relevant.

        Raises:
            UpstreamUnavailable: on timeout, provider error or malformed output
        """
        if not candidates:
            return []

        params = self.build_request(query, candidates)
        start_time = time.time()

        try:
            response = await call_with_breaker(
                gateway_breaker,
                lambda: asyncio.wait_for(
                    self.client.chat.completions.create(**params),
                    timeout=self.config.timeout_sec,
                ),
            )
        except asyncio.TimeoutError as exc:
            logger.error("rerank_timeout", model=self.config.model, timeout_sec=self.config.timeout_sec)
            raise UpstreamUnavailable("Rerank request timed out", upstream="rerank") from exc
        except CircuitBreakerError as exc:
            logger.error("rerank_circuit_open", model=self.config.model)
            raise UpstreamUnavailable("Rerank provider circuit open", upstream="rerank") from exc
        except OpenAIError as exc:
            logger.error("rerank_failed", model=self.config.model, error=str(exc))
            raise UpstreamUnavailable(f"Rerank request failed: {exc}", upstream="rerank") from exc

        latency = time.time() - start_time
        search_stage_duration_seconds.labels(stage="rerank").observe(latency)

        output = self._parse(response)
        logger.info(
            "rerank_completed",
            model=self.config.model,
            candidates=len(candidates),
            returned=len(output.emojis),
            latency_ms=round(latency * 1000, 1),
        )
        return output.emojis

    def _parse(self, response: Any) -> RerankOutput:
        if not response.choices:
            raise UpstreamUnavailable("Rerank response contained no choices", upstream="rerank")

        content = response.choices[0].message.content
        if not content:
            raise UpstreamUnavailable("Rerank response was empty", upstream="rerank")

        try:
            return RerankOutput.model_validate_json(content)
        except ValidationError as exc:
            logger.error("rerank_malformed_output", model=self.config.model, error=str(exc))
            raise UpstreamUnavailable("Rerank response did not match schema", upstream="rerank") from exc
