from __future__ import annotations

"""AI inference collaborator backed by langchain-openai.

Every provider in :class:`ModelRouter` exposes an OpenAI-compatible endpoint,
so one ``ChatOpenAI`` client covers them all. Structured calls go through
``with_structured_output``; blueprint text is streamed with ``astream``.

Upstream rate limiting and policy refusals are translated into
:class:`RateLimitExceeded` and :class:`SecurityError`; callers decide whether
anything else is recoverable.
"""

import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar

import openai
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from ..domain.agent_models import InferenceContext
from ..domain.errors import SecurityError
from ..security.rate_limit import RateLimitExceeded
from .model_router import ModelRouter, ProviderSelection

LOG = logging.getLogger("forge.llm")

Message = Dict[str, str]
SchemaT = TypeVar("SchemaT", bound=BaseModel)


def _translate(exc: Exception) -> Exception:
    if isinstance(exc, openai.RateLimitError):
        return RateLimitExceeded(60, f"AI provider rate limit exceeded: {exc}")
    if isinstance(exc, openai.PermissionDeniedError):
        return SecurityError(f"AI provider refused the request: {exc}")
    return exc


class InferenceClient:
    def __init__(self, router: Optional[ModelRouter] = None) -> None:
        self._router = router or ModelRouter()

    def _client_for(self, selection: ProviderSelection, max_tokens: Optional[int]) -> ChatOpenAI:
        api_key = os.getenv(selection.api_key_env) if selection.api_key_env else None
        if selection.requires_api_key and not api_key:
            raise RuntimeError(f"LLM provider '{selection.name}' not configured")
        base_url = selection.default_base_url
        if selection.base_url_env:
            base_url = os.getenv(selection.base_url_env, base_url or "") or base_url
        kwargs: Dict[str, Any] = {
            "api_key": api_key or "not-needed",
            "base_url": base_url,
            "model": selection.model,
        }
        if selection.temperature is not None:
            kwargs["temperature"] = selection.temperature
        budget = max_tokens or selection.max_tokens
        if budget:
            kwargs["max_tokens"] = budget
        if selection.reasoning_effort:
            kwargs["reasoning_effort"] = selection.reasoning_effort
        LOG.info("Using LLM provider name=%s model=%s base_url=%s", selection.name, selection.model, base_url)
        return ChatOpenAI(**kwargs)

    def _selections(self, action: str, context: Optional[InferenceContext]) -> List[ProviderSelection]:
        primary = self._router.select(action, context)
        fallback = self._router.fallback_for(primary, action)
        return [primary, fallback] if fallback else [primary]

    async def execute(
        self,
        *,
        messages: List[Message],
        schema: Type[SchemaT],
        action: str,
        context: Optional[InferenceContext] = None,
        max_tokens: Optional[int] = None,
    ) -> SchemaT:
        """Run a structured call; the result conforms to ``schema`` syntactically."""

        last_error: Optional[Exception] = None
        for selection in self._selections(action, context):
            try:
                llm = self._client_for(selection, max_tokens).with_structured_output(schema)
                result = await llm.ainvoke(messages)
                if isinstance(result, dict):
                    result = schema.model_validate(result)
                return result  # type: ignore[return-value]
            except (RateLimitExceeded, SecurityError):
                raise
            except Exception as exc:
                translated = _translate(exc)
                if translated is not exc:
                    raise translated from exc
                LOG.warning("llm_call_failed action=%s model=%s error=%s", action, selection.model, exc)
                last_error = exc
        assert last_error is not None
        raise last_error

    async def stream(
        self,
        *,
        messages: List[Message],
        action: str,
        context: Optional[InferenceContext] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Yield text chunks of a free-form completion."""

        selection = self._router.select(action, context)
        llm = self._client_for(selection, max_tokens)
        try:
            async for chunk in llm.astream(messages):
                text = chunk.content if hasattr(chunk, "content") else str(chunk)
                if isinstance(text, str) and text:
                    yield text
        except Exception as exc:
            translated = _translate(exc)
            if translated is exc:
                raise
            raise translated from exc


_client: Optional[InferenceClient] = None


def get_inference_client() -> InferenceClient:
    global _client
    if _client is None:
        _client = InferenceClient()
    return _client
