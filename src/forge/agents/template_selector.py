from __future__ import annotations

"""AI-backed choice of the starter template for a request.

The selector never fails the enclosing workflow: an empty catalogue or any
inference problem other than rate limiting or a policy refusal yields the
same "no selection" result. Whether the returned name actually belongs to the
offered catalogue is checked by the orchestrator, not here.
"""

import secrets
from typing import List, Optional, Sequence

from ..domain.agent_models import InferenceContext, TemplateInfo, TemplateSelection
from ..domain.errors import SecurityError, SelectionFailure
from ..observability.metrics import SELECTION_FALLBACKS
from ..observability.structured import StructuredLogger, get_logger
from ..security.rate_limit import RateLimitExceeded
from ..services.inference import InferenceClient, Message

DESCRIPTION_LIMIT = 400

NO_TEMPLATES_REASONING = "No templates were available to choose from."
SELECTION_ERROR_REASONING = "An error occurred during the template selection process."

SYSTEM_PROMPT = """You are an Expert Software Architect specializing in template selection for rapid development. Your task is to select the most suitable starting template based on user requirements.

## SELECTION EXAMPLES:

**Example 1 - Game Request:**
User: "Build a 2D puzzle game with scoring"
Templates: ["react-dashboard", "react-game-starter", "vue-blog"]
Selection: "react-game-starter"
complexity: "simple"
Reasoning: "Game starter template provides canvas setup, state management, and scoring systems"

**Example 2 - Business Dashboard:**
User: "Create an analytics dashboard with charts"
Templates: ["react-dashboard", "nextjs-blog", "vanilla-js"]
Selection: "react-dashboard"
complexity: "simple"
Reasoning: "Dashboard template includes chart components, grid layouts, and data visualization setup"

**Example 3 - No Perfect Match:**
User: "Build a recipe sharing app"
Templates: ["react-social", "vue-blog", "angular-todo"]
Selection: "react-social"
complexity: "simple"
Reasoning: "Social template provides user interactions, content sharing, and community features closest to recipe sharing needs"

## SELECTION CRITERIA:
1. **Feature Alignment** - Templates with similar core functionality
2. **Tech Stack Match** - Compatible frameworks and dependencies
3. **Architecture Fit** - Similar application structure and patterns
4. **Minimal Modification** - Template requiring least changes

## STYLE GUIDE:
- **Minimalist Design**: Clean, simple interfaces
- **Brutalism**: Bold, raw, industrial aesthetics
- **Retro**: Vintage, nostalgic design elements
- **Illustrative**: Rich graphics and visual storytelling
- **Kid_Playful**: Colorful, fun, child-friendly interfaces

## RULES:
- ALWAYS select a template (never return null)
- Ignore misleading template names - analyze actual features
- Focus on functionality over naming conventions
- Provide clear, specific reasoning for selection"""


def no_selection(reasoning: str) -> TemplateSelection:
    return TemplateSelection(
        selected_template_name=None,
        reasoning=reasoning,
        use_case=None,
        complexity=None,
        style_selection=None,
        project_name="",
    )


def _truncate(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def describe_templates(templates: Sequence[TemplateInfo]) -> str:
    return "\n\n".join(
        f"- Template #{index} \n Name - {t.name} \n Language: {t.language or 'Unknown'}, "
        f"Frameworks: {', '.join(t.frameworks) or 'None'}\n {_truncate(t.description.selection)}"
        for index, t in enumerate(templates, start=1)
    )


def build_selection_messages(query: str, templates: Sequence[TemplateInfo], entropy: Optional[str] = None) -> List[Message]:
    entropy = entropy or secrets.token_hex(32)
    user_prompt = f"""**User Request:** "{query}"

**Available Templates:**
{describe_templates(templates)}

**Task:** Select the most suitable template and provide:
1. Template name (exact match from list)
2. Clear reasoning for why it fits the user's needs
3. Appropriate style for the project type. Try to come up with unique styles that might look nice and unique. Be creative about your choices.
4. Descriptive project name

Analyze each template's features, frameworks, and architecture to make the best match.

ENTROPY SEED: {entropy} - for unique results"""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


class TemplateSelector:
    ACTION = "templateSelection"

    def __init__(self, inference: InferenceClient, max_tokens: int = 2000) -> None:
        self._inference = inference
        self._max_tokens = max_tokens

    async def select(
        self,
        query: str,
        candidates: Sequence[TemplateInfo],
        inference_context: InferenceContext,
        logger: Optional[StructuredLogger] = None,
    ) -> TemplateSelection:
        log = (logger or get_logger("template_selector")).bind(agent_id=inference_context.agent_id)
        if not candidates:
            log.error("No templates available for selection")
            SELECTION_FALLBACKS.labels(reason="no_templates").inc()
            return no_selection(NO_TEMPLATES_REASONING)

        log.info("Asking AI to select a template", extra={"templates": [t.name for t in candidates], "query_length": len(query)})
        try:
            selection = await self._inference.execute(
                messages=build_selection_messages(query, candidates),
                schema=TemplateSelection,
                action=self.ACTION,
                context=inference_context,
                max_tokens=self._max_tokens,
            )
            if not isinstance(selection, TemplateSelection):
                raise SelectionFailure(f"Unexpected selection payload: {type(selection).__name__}")
        except (RateLimitExceeded, SecurityError):
            raise
        except Exception as exc:
            log.error("AI template selection failed, falling back to no selection", extra={"error": str(exc)})
            SELECTION_FALLBACKS.labels(reason="inference_error").inc()
            return no_selection(SELECTION_ERROR_REASONING)

        log.info(
            "AI template selection completed",
            extra={
                "selected": selection.selected_template_name,
                "complexity": selection.complexity,
                "project_name": selection.project_name,
            },
        )
        return selection
