from __future__ import annotations

from typing import Awaitable, Callable, List, Optional

from ..domain.agent_models import InferenceContext, TemplateDetails
from ..services.inference import InferenceClient, Message

BLUEPRINT_SYSTEM_PROMPT = (
    "You are a senior product engineer. Given a user request and the starter template the project "
    "will be built on, write a concise implementation blueprint in Markdown: title, one-paragraph "
    "description, visual style, a list of views or screens, the files to add or change in the template "
    "with one line each on their purpose, and an ordered list of implementation phases. "
    "Do not write code."
)


def build_blueprint_messages(
    *,
    query: str,
    language: str,
    frameworks: List[str],
    template: Optional[TemplateDetails],
    project_name: str = "",
) -> List[Message]:
    lines = [f'**User Request:** "{query}"', f"**Language:** {language}", f"**Frameworks:** {', '.join(frameworks) or 'None'}"]
    if project_name:
        lines.append(f"**Project Name:** {project_name}")
    if template is not None:
        lines.append(f"**Template:** {template.name}")
        if template.description.usage:
            lines.append(f"**Template Usage:**\n{template.description.usage}")
        paths = [f.file_path for f in template.files][:80]
        if paths:
            lines.append("**Template Files:**\n" + "\n".join(f"- {p}" for p in paths))
    return [
        {"role": "system", "content": BLUEPRINT_SYSTEM_PROMPT},
        {"role": "user", "content": "\n\n".join(lines)},
    ]


async def generate_blueprint(
    inference: InferenceClient,
    *,
    query: str,
    language: str,
    frameworks: List[str],
    template: Optional[TemplateDetails],
    context: InferenceContext,
    on_chunk: Callable[[str], Awaitable[None]],
    project_name: str = "",
    max_tokens: Optional[int] = None,
) -> str:
    """Stream a blueprint, forwarding every chunk, and return the full text."""

    messages = build_blueprint_messages(
        query=query,
        language=language,
        frameworks=frameworks,
        template=template,
        project_name=project_name,
    )
    parts: List[str] = []
    async for chunk in inference.stream(messages=messages, action="blueprint", context=context, max_tokens=max_tokens):
        parts.append(chunk)
        await on_chunk(chunk)
    return "".join(parts)
