from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for records that cross the wire; JSON keys are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Jurisdiction(str, Enum):
    DEFAULT = "default"
    EU = "eu"
    FEDRAMP = "fedramp"


class AgentMode(str, Enum):
    DETERMINISTIC = "deterministic"
    SMART = "smart"


class DevState(IntEnum):
    IDLE = 0
    BLUEPRINT_GENERATING = 1


# ---------------------------------------------------------------------------
# Templates (owned by the sandbox service)
# ---------------------------------------------------------------------------
class TemplateDescription(ApiModel):
    selection: str = ""
    usage: str = ""


class TemplateInfo(ApiModel):
    name: str
    language: Optional[str] = None
    frameworks: List[str] = Field(default_factory=list)
    description: TemplateDescription = Field(default_factory=TemplateDescription)


class TemplateFile(ApiModel):
    file_path: str
    file_contents: str = ""


class TemplateDetails(ApiModel):
    name: str
    description: TemplateDescription = Field(default_factory=TemplateDescription)
    language: Optional[str] = None
    frameworks: List[str] = Field(default_factory=list)
    files: List[TemplateFile] = Field(default_factory=list)


class TemplateListResponse(ApiModel):
    success: bool
    templates: List[TemplateInfo] = Field(default_factory=list)
    error: Optional[str] = None


class TemplateDetailsResponse(ApiModel):
    success: bool
    template_details: Optional[TemplateDetails] = None
    error: Optional[str] = None


class DeploymentResponse(ApiModel):
    success: bool
    run_id: Optional[str] = None
    preview_url: Optional[str] = Field(default=None, alias="previewURL")
    tunnel_url: Optional[str] = Field(default=None, alias="tunnelURL")
    error: Optional[str] = None


UseCase = Literal["SaaS Product Website", "Dashboard", "Blog", "Portfolio", "E-Commerce", "General", "Other"]
Complexity = Literal["simple", "moderate", "complex"]
StyleSelection = Literal["Minimalist Design", "Brutalism", "Retro", "Illustrative", "Kid_Playful", "Custom"]


class TemplateSelection(ApiModel):
    """Structured answer of the template decision call."""

    selected_template_name: Optional[str] = Field(
        default=None,
        description="Exact name of the chosen template from the offered list, or null if none fits.",
    )
    reasoning: str = Field(default="", description="Why this template fits the request.")
    use_case: Optional[UseCase] = Field(default=None, description="Primary use case of the requested project.")
    complexity: Optional[Complexity] = Field(default=None, description="Expected complexity of the project.")
    style_selection: Optional[StyleSelection] = Field(default=None, description="Visual style for the project.")
    project_name: str = Field(default="", description="Short, descriptive project name (kebab-case).")


# ---------------------------------------------------------------------------
# Inference configuration
# ---------------------------------------------------------------------------
class ModelConfig(ApiModel):
    name: str
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    reasoning_effort: Optional[Literal["low", "medium", "high"]] = None
    fallback_model: Optional[str] = None


class InferenceContext(ApiModel):
    user_model_configs: Dict[str, ModelConfig] = Field(default_factory=dict)
    agent_id: str
    user_id: str = "anonymous"
    enable_realtime_code_fix: bool = True


# ---------------------------------------------------------------------------
# Agent state (owned by the actor)
# ---------------------------------------------------------------------------
class ClientReportedError(ApiModel):
    message: str
    stack: Optional[str] = None
    url: Optional[str] = None
    reported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GeneratedFile(ApiModel):
    file_path: str
    file_contents: str = ""
    purpose: str = ""


class CodeGenState(ApiModel):
    session_id: str = ""
    query: str = ""
    language: str = "typescript"
    frameworks: List[str] = Field(default_factory=list)
    hostname: str = ""
    agent_mode: AgentMode = AgentMode.DETERMINISTIC
    template_details: Optional[TemplateDetails] = None
    selection: Optional[TemplateSelection] = None
    inference_context: Optional[InferenceContext] = None
    blueprint: str = ""
    generated_files: Dict[str, GeneratedFile] = Field(default_factory=dict)
    sandbox_session_id: Optional[str] = None
    sandbox_instance_id: Optional[str] = None
    preview_url: Optional[str] = None
    pending_user_inputs: List[str] = Field(default_factory=list)
    current_dev_state: DevState = DevState.IDLE
    generation_id: Optional[str] = None
    should_be_generating: bool = False
    client_reported_errors: List[ClientReportedError] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------
DEFAULT_LANGUAGE = "typescript"
DEFAULT_FRAMEWORKS = ("react", "vite")
DEFAULT_SELECTED_TEMPLATE = "auto"


class CodeGenArgs(ApiModel):
    query: Optional[str] = None
    language: Optional[str] = None
    frameworks: Optional[List[str]] = None
    selected_template: Optional[str] = DEFAULT_SELECTED_TEMPLATE
    agent_mode: Optional[AgentMode] = None


class AgentConnectionData(ApiModel):
    websocket_url: str
    agent_id: str


class AgentPreviewResponse(ApiModel):
    run_id: str
    preview_url: Optional[str] = Field(default=None, alias="previewURL")
    tunnel_url: Optional[str] = Field(default=None, alias="tunnelURL")


class AgentCloneResponse(ApiModel):
    agent_id: str
    source_agent_id: str
    websocket_url: str
    http_status_url: str


class PlatformStatus(ApiModel):
    global_user_message: str = ""
    change_logs: str = ""
    has_active_message: bool = False
