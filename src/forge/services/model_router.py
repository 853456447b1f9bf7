"""Routing helpers for selecting the model that serves an agent action.

The router does not couple directly to concrete SDK clients; it resolves a
provider configuration (credentials env var, base URL, model, sampling
parameters) that :mod:`forge.services.inference` turns into a client.
Per-user overrides carried in the :class:`InferenceContext` take precedence
over the action defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Set

from ..domain.agent_models import InferenceContext, ModelConfig


@dataclass(frozen=True)
class ProviderSelection:
    """Returned details about the provider that should handle an action."""

    name: str
    model: str
    api_key_env: Optional[str]
    base_url_env: Optional[str] = None
    default_base_url: Optional[str] = None
    requires_api_key: bool = True
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    reasoning_effort: Optional[str] = None
    fallback_model: Optional[str] = None


class ModelRouter:
    """Policy-based router for the agent's AI actions."""

    PROVIDER_CONFIG: Dict[str, Dict[str, Optional[str] | bool]] = {
        "openai": {
            "api_key_env": "OPENAI_API_KEY",
            "base_url_env": "OPENAI_BASE_URL",
            "model_env": "OPENAI_MODEL",
            "default_model": "gpt-4o-mini",
            "default_base_url": "https://api.openai.com/v1",
        },
        "gemini": {
            "api_key_env": "GEMINI_API_KEY",
            "base_url_env": "GEMINI_BASE_URL",
            "model_env": "GEMINI_MODEL",
            "default_model": "gemini-2.5-flash",
            "default_base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
        },
        "xai": {
            "api_key_env": "XAI_API_KEY",
            "base_url_env": "XAI_BASE_URL",
            "model_env": "XAI_MODEL",
            "default_model": "grok-2-latest",
            "default_base_url": "https://api.x.ai/v1",
        },
        "local": {
            "api_key_env": "LOCAL_API_KEY",
            "base_url_env": "LOCAL_BASE_URL",
            "model_env": "LOCAL_MODEL",
            "default_model": "gpt-oss:120b",
            "default_base_url": "http://127.0.0.1:11434/v1",
            "requires_api_key": False,
        },
    }

    ROUTING_POLICY: Dict[str, tuple[str, ...]] = {
        # The template decision is short and latency sensitive.
        "templateSelection": ("gemini", "openai", "xai", "local"),
        "blueprint": ("openai", "gemini", "xai", "local"),
    }

    ACTION_DEFAULTS: Dict[str, Dict[str, float | int]] = {
        "templateSelection": {"temperature": 0.6, "max_tokens": 2000},
        "blueprint": {"temperature": 0.7, "max_tokens": 8000},
    }

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        allowed_providers: Optional[Iterable[str]] = None,
    ) -> None:
        self._env = os.environ if env is None else env
        self._allowed: Optional[Set[str]] = set(allowed_providers) if allowed_providers else None
        preferred = (self._env.get("FORGE_MODEL_PROVIDER") or "").strip().lower()
        self._preferred_provider = preferred if preferred in self.PROVIDER_CONFIG else None

    # ------------------------------------------------------------------
    # Provider resolution helpers
    # ------------------------------------------------------------------
    def provider_available(self, provider: str) -> bool:
        cfg = self.PROVIDER_CONFIG.get(provider)
        if not cfg:
            return False
        if self._allowed is not None and provider not in self._allowed:
            return False
        if bool(cfg.get("requires_api_key", True)):
            api_key_env = cfg.get("api_key_env")
            return bool(api_key_env and self._env.get(str(api_key_env)))
        # Keyless providers must be switched on explicitly.
        if (self._env.get("FORGE_ENABLE_LOCAL_PROVIDER") or "").strip() != "1":
            return False
        base_url_env = cfg.get("base_url_env")
        return bool(base_url_env and self._env.get(str(base_url_env)))

    @staticmethod
    def provider_for_model(model_name: str) -> str:
        name = model_name.lower()
        if name.startswith("gemini"):
            return "gemini"
        if name.startswith("grok"):
            return "xai"
        if name.startswith("local/") or ":" in name:
            return "local"
        return "openai"

    def _build(self, provider: str, model: str, action: str, override: Optional[ModelConfig]) -> ProviderSelection:
        cfg = self.PROVIDER_CONFIG[provider]
        defaults = self.ACTION_DEFAULTS.get(action, {})
        temperature = override.temperature if override and override.temperature is not None else defaults.get("temperature")
        max_tokens = override.max_tokens if override and override.max_tokens else defaults.get("max_tokens")
        return ProviderSelection(
            name=provider,
            model=model.removeprefix("local/"),
            api_key_env=cfg.get("api_key_env"),  # type: ignore[arg-type]
            base_url_env=cfg.get("base_url_env"),  # type: ignore[arg-type]
            default_base_url=cfg.get("default_base_url"),  # type: ignore[arg-type]
            requires_api_key=bool(cfg.get("requires_api_key", True)),
            temperature=float(temperature) if temperature is not None else None,
            max_tokens=int(max_tokens) if max_tokens else None,
            reasoning_effort=override.reasoning_effort if override else None,
            fallback_model=override.fallback_model if override else None,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def select(self, action: str, context: Optional[InferenceContext] = None) -> ProviderSelection:
        """Return the provider and sampling parameters for ``action``.

        Raises
        ------
        RuntimeError
            If neither a user override nor any provider in the routing
            policy is usable.
        """

        override = context.user_model_configs.get(action) if context else None
        if override is not None:
            provider = self.provider_for_model(override.name)
            return self._build(provider, override.name, action, override)

        priority = list(self.ROUTING_POLICY.get(action, self.ROUTING_POLICY["blueprint"]))
        if self._preferred_provider:
            priority = [self._preferred_provider] + [p for p in priority if p != self._preferred_provider]
        for provider in priority:
            if self.provider_available(provider):
                cfg = self.PROVIDER_CONFIG[provider]
                model = self._env.get(str(cfg.get("model_env") or ""), str(cfg.get("default_model") or ""))
                return self._build(provider, model, action, None)
        raise RuntimeError(f"No active model provider available for action '{action}'.")

    def fallback_for(self, selection: ProviderSelection, action: str) -> Optional[ProviderSelection]:
        """Selection to retry with when the primary model fails, if configured."""

        if not selection.fallback_model:
            return None
        provider = self.provider_for_model(selection.fallback_model)
        base = self._build(provider, selection.fallback_model, action, None)
        return ProviderSelection(
            name=base.name,
            model=base.model,
            api_key_env=base.api_key_env,
            base_url_env=base.base_url_env,
            default_base_url=base.default_base_url,
            requires_api_key=base.requires_api_key,
            temperature=selection.temperature,
            max_tokens=selection.max_tokens,
        )
