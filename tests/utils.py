"""Test doubles for the sandbox service and the inference client."""

import itertools

from src.forge.domain.agent_models import (
    DeploymentResponse,
    TemplateDescription,
    TemplateDetails,
    TemplateDetailsResponse,
    TemplateFile,
    TemplateInfo,
    TemplateListResponse,
)


def make_templates():
    return [
        TemplateInfo(
            name="react-game-starter",
            language="typescript",
            frameworks=["react", "vite"],
            description=TemplateDescription(selection="Canvas setup, game loop, scoring and state management."),
        ),
        TemplateInfo(
            name="react-dashboard",
            language="typescript",
            frameworks=["react", "recharts"],
            description=TemplateDescription(selection="Dashboard shell with charts and data grids."),
        ),
        TemplateInfo(
            name="vue-blog",
            language="typescript",
            frameworks=["vue"],
            description=TemplateDescription(selection="Markdown blog with tags."),
        ),
    ]


class FakeSandboxSession:
    def __init__(self, sandbox, session_id):
        self._sandbox = sandbox
        self.session_id = session_id

    async def get_template_details(self, name):
        self._sandbox.detail_requests.append(name)
        if self._sandbox.details_error:
            return TemplateDetailsResponse(success=False, error=self._sandbox.details_error)
        details = self._sandbox.details.get(name)
        if details is None:
            return TemplateDetailsResponse(success=False, error=f"Template {name} not found")
        return TemplateDetailsResponse(success=True, template_details=details)

    async def deploy(self, files):
        self._sandbox.deployed.append((self.session_id, list(files)))
        return self._sandbox.deploy_result


class FakeSandbox:
    """Sandbox double with a fixed catalogue; flip the ``*_error`` fields to fail calls."""

    def __init__(self, templates=None):
        self.templates = make_templates() if templates is None else list(templates)
        self.details = {
            t.name: TemplateDetails(
                name=t.name,
                language=t.language,
                frameworks=list(t.frameworks),
                files=[
                    TemplateFile(file_path="package.json", file_contents='{"name": "%s"}' % t.name),
                    TemplateFile(file_path="src/App.tsx", file_contents="export default function App() { return null }"),
                ],
            )
            for t in self.templates
        }
        self.list_error = None
        self.details_error = None
        self.sessions = []
        self.detail_requests = []
        self.deployed = []
        self.deploy_result = DeploymentResponse(
            success=True,
            run_id="run-1",
            preview_url="https://run-1.preview.forge.dev",
            tunnel_url="https://tunnel.forge.dev/run-1",
        )

    async def list_templates(self):
        if self.list_error:
            return TemplateListResponse(success=False, error=self.list_error)
        return TemplateListResponse(success=True, templates=list(self.templates))

    async def acquire_session(self, session_id):
        self.sessions.append(session_id)
        return FakeSandboxSession(self, session_id)


class FakeInference:
    """Inference double: ``execute`` returns ``selection``, ``stream`` yields ``chunks``."""

    def __init__(self, selection=None, chunks=("# Puzzle game\n", "Build a grid of tiles.")):
        self.selection = selection
        self.chunks = list(chunks)
        self.execute_error = None
        self.stream_error = None
        self.calls = []

    async def execute(self, *, messages, schema, action, context=None, max_tokens=None):
        self.calls.append({"action": action, "messages": messages, "context": context, "max_tokens": max_tokens})
        if self.execute_error is not None:
            raise self.execute_error
        return self.selection

    async def stream(self, *, messages, action, context=None, max_tokens=None):
        self.calls.append({"action": action, "messages": messages, "context": context, "max_tokens": max_tokens})
        for chunk in self.chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error


def sequential_ids(prefix="agent"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"

