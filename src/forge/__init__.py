# Forge package init
import logging
import os

LOG_FORMAT = "[FORGE][%(levelname)s] %(name)s: %(message)s"


def _level(env_var: str, default: str) -> int:
    name = (os.getenv(env_var) or default).upper()
    return getattr(logging, name, logging.INFO)


def _configure_logging() -> None:
    root = logging.getLogger("forge")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    base = os.getenv("FORGE_LOG_LEVEL") or "INFO"
    root.setLevel(_level("FORGE_LOG_LEVEL", "INFO"))
    # Inference calls log every provider selection; they get their own knob.
    logging.getLogger("forge.llm").setLevel(_level("FORGE_LLM_LOG_LEVEL", base))


_configure_logging()
