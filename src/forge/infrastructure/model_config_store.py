from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel

from ..domain.agent_models import ModelConfig


class MergedModelConfig(BaseModel):
    """A user's effective config for one agent action.

    ``is_user_override`` is False when the record only mirrors the platform
    default; such records are not copied into the inference context.
    """

    name: str
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    reasoning_effort: Optional[str] = None
    fallback_model: Optional[str] = None
    is_user_override: bool = False


class InMemoryModelConfigStore:
    """Simple in-memory per-user model configuration store.

    Replace with a persistent implementation backed by the accounts database.
    """

    def __init__(self) -> None:
        self._configs: Dict[str, Dict[str, MergedModelConfig]] = {}

    async def get_user_model_configs(self, user_id: str) -> Dict[str, MergedModelConfig]:
        return {k: v.model_copy() for k, v in self._configs.get(user_id, {}).items()}

    def set_user_model_config(self, user_id: str, action: str, config: MergedModelConfig) -> None:
        self._configs.setdefault(user_id, {})[action] = config

    def clear(self) -> None:
        self._configs.clear()


def user_overrides(records: Dict[str, MergedModelConfig]) -> Dict[str, ModelConfig]:
    """Keep only explicit user overrides, reduced to the inference-relevant fields."""

    overrides: Dict[str, ModelConfig] = {}
    for action, merged in records.items():
        if not merged.is_user_override:
            continue
        overrides[action] = ModelConfig(
            name=merged.name,
            max_tokens=merged.max_tokens,
            temperature=merged.temperature,
            reasoning_effort=merged.reasoning_effort,  # type: ignore[arg-type]
            fallback_model=merged.fallback_model,
        )
    return overrides


_store = InMemoryModelConfigStore()


def get_model_config_store() -> InMemoryModelConfigStore:
    return _store
