from __future__ import annotations

"""Request-scoped structured logger handles.

A :class:`StructuredLogger` is created per request (or per background task)
and handed explicitly to each component that logs on its behalf. Context
key/values travel with the handle instead of living in module globals.
"""

import logging
from typing import Any, Dict, MutableMapping, Optional, Tuple


class StructuredLogger(logging.LoggerAdapter):
    """``LoggerAdapter`` that renders bound context after the message."""

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(logger, dict(context or {}))

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self.extra or {})

    def bind(self, **context: Any) -> "StructuredLogger":
        merged = self.context
        merged.update({k: v for k, v in context.items() if v is not None})
        return StructuredLogger(self.logger, merged)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = self.context
        call_extra = kwargs.pop("extra", None) or {}
        fields.update(call_extra)
        kwargs["extra"] = {"context": fields}
        if fields:
            rendered = " ".join(f"{key}={_short(value)}" for key, value in fields.items())
            msg = f"{msg} | {rendered}"
        return msg, kwargs


def _short(value: Any, limit: int = 200) -> str:
    text = str(value)
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def get_logger(component: str, **context: Any) -> StructuredLogger:
    """Return a structured logger for ``forge.<component>`` with bound context."""

    name = component if component.startswith("forge") else f"forge.{component}"
    return StructuredLogger(logging.getLogger(name), {k: v for k, v in context.items() if v is not None})
