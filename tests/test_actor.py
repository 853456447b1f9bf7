import pytest

from src.forge.agents.actor import AgentInitArgs, CodeGenActor
from src.forge.domain.agent_models import (
    AgentMode,
    CodeGenState,
    DevState,
    InferenceContext,
    Jurisdiction,
    TemplateSelection,
)
from tests.utils import FakeInference, FakeSandbox


def _args(sandbox, chunks):
    async def on_chunk(chunk):
        chunks.append(chunk)

    return AgentInitArgs(
        query="Build a 2D puzzle game",
        language="typescript",
        frameworks=["react", "vite"],
        hostname="localhost:8787",
        inference_context=InferenceContext(agent_id="a1"),
        template_details=sandbox.details["react-game-starter"],
        selection=TemplateSelection(selected_template_name="react-game-starter", project_name="tile-puzzle"),
        sandbox_session_id="sbx-1",
        on_blueprint_chunk=on_chunk,
    )


def _actor(settings, sandbox=None, inference=None):
    return CodeGenActor(
        "a1",
        Jurisdiction.DEFAULT,
        sandbox=sandbox or FakeSandbox(),
        inference=inference or FakeInference(),
        settings=settings,
    )


@pytest.mark.asyncio
async def test_uninitialized_actor(settings):
    actor = _actor(settings)
    assert not await actor.is_initialized()
    assert await actor.get_full_state() == CodeGenState()
    assert await actor.deploy_to_sandbox() is None


@pytest.mark.asyncio
async def test_initialize_streams_blueprint(settings):
    sandbox = FakeSandbox()
    actor = _actor(settings, sandbox=sandbox)
    chunks = []
    state = await actor.initialize(_args(sandbox, chunks), AgentMode.SMART)

    assert chunks == ["# Puzzle game\n", "Build a grid of tiles."]
    assert state.blueprint == "".join(chunks)
    assert state.agent_mode is AgentMode.SMART
    assert state.current_dev_state is DevState.IDLE
    assert state.should_be_generating is False
    assert state.generated_files["src/App.tsx"].purpose == "template"
    assert await actor.is_initialized()


@pytest.mark.asyncio
async def test_initialize_failure_resets_generation_flags(settings):
    sandbox = FakeSandbox()
    inference = FakeInference()
    inference.stream_error = RuntimeError("model offline")
    actor = _actor(settings, sandbox=sandbox, inference=inference)
    with pytest.raises(RuntimeError):
        await actor.initialize(_args(sandbox, []))
    state = await actor.get_full_state()
    assert state.should_be_generating is False
    assert state.generation_id is None
    assert state.blueprint == ""


@pytest.mark.asyncio
async def test_state_is_returned_as_copy(settings):
    actor = _actor(settings)
    await actor.set_state(CodeGenState(session_id="a1", pending_user_inputs=["x"]))
    snapshot = await actor.get_full_state()
    snapshot.pending_user_inputs.append("y")
    assert (await actor.get_full_state()).pending_user_inputs == ["x"]


@pytest.mark.asyncio
async def test_deploy_records_sandbox_instance(settings):
    sandbox = FakeSandbox()
    actor = _actor(settings, sandbox=sandbox)
    await actor.initialize(_args(sandbox, []))
    preview = await actor.deploy_to_sandbox()
    assert preview.run_id == "run-1"
    state = await actor.get_full_state()
    assert state.sandbox_instance_id == "run-1"
    assert state.preview_url == "https://run-1.preview.forge.dev"
    assert sandbox.deployed[0][0] == "sbx-1"


@pytest.mark.asyncio
async def test_dev_state_tracks_blueprint_phase(settings):
    sandbox = FakeSandbox()
    actor = _actor(settings, sandbox=sandbox)
    seen = []
    args = _args(sandbox, [])

    async def on_chunk(chunk):
        seen.append((await actor.get_full_state()).current_dev_state)

    args.on_blueprint_chunk = on_chunk
    state = await actor.initialize(args)
    assert seen == [DevState.BLUEPRINT_GENERATING, DevState.BLUEPRINT_GENERATING]
    assert state.current_dev_state is DevState.IDLE
