from __future__ import annotations

"""Error taxonomy for the orchestrator.

Every error carries the HTTP status it is surfaced with; the API layer turns
them into ``{"detail": message}`` bodies.
"""


class OrchestratorError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NamespaceUnavailable(OrchestratorError):
    """The actor namespace is not configured for this deployment."""

    status_code = 500


class AgentNotFound(OrchestratorError):
    status_code = 404

    def __init__(self, agent_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Agent {agent_id} not found")
        self.agent_id = agent_id


class TemplateFetchFailure(OrchestratorError):
    """The sandbox service reported failure or returned nothing usable."""

    status_code = 500


class TemplateSelectionRejected(OrchestratorError):
    """The selector returned no template, or one outside the offered set."""

    status_code = 500


class SelectionFailure(OrchestratorError):
    """Internal to template selection; always replaced by the fallback result."""


class SecurityError(OrchestratorError):
    status_code = 403


class WebSocketUpgradeError(OrchestratorError):
    """Raised inside the connection router; reported over the socket, not to HTTP."""

    status_code = 500
