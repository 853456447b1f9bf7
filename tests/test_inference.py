from types import SimpleNamespace

import pytest

from src.forge.domain.agent_models import InferenceContext, ModelConfig, TemplateSelection
from src.forge.services import inference as inference_module
from src.forge.services.inference import InferenceClient
from src.forge.services.model_router import ModelRouter


class FakeChat:
    instances = []
    failing_models = set()

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        FakeChat.instances.append(self)

    def with_structured_output(self, schema):
        return self

    async def ainvoke(self, messages):
        if self.kwargs["model"] in FakeChat.failing_models:
            raise RuntimeError(f"{self.kwargs['model']} unavailable")
        return {"selectedTemplateName": "vue-blog", "reasoning": "blog request"}

    async def astream(self, messages):
        for text in ("Blue", "print"):
            yield SimpleNamespace(content=text)


@pytest.fixture(autouse=True)
def fake_chat(monkeypatch):
    FakeChat.instances = []
    FakeChat.failing_models = set()
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
    monkeypatch.setattr(inference_module, "ChatOpenAI", FakeChat)
    return FakeChat


def _client():
    return InferenceClient(ModelRouter(env={"OPENAI_API_KEY": "sk-test"}))


@pytest.mark.asyncio
async def test_execute_validates_dict_results():
    result = await _client().execute(
        messages=[{"role": "user", "content": "blog"}],
        schema=TemplateSelection,
        action="templateSelection",
        max_tokens=500,
    )
    assert isinstance(result, TemplateSelection)
    assert result.selected_template_name == "vue-blog"
    kwargs = FakeChat.instances[0].kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["max_tokens"] == 500
    assert kwargs["base_url"] == "https://api.openai.com/v1"


@pytest.mark.asyncio
async def test_execute_retries_with_fallback_model():
    FakeChat.failing_models = {"gpt-4o"}
    context = InferenceContext(
        agent_id="a1",
        user_model_configs={"templateSelection": ModelConfig(name="gpt-4o", fallback_model="gpt-4o-mini")},
    )
    result = await _client().execute(
        messages=[], schema=TemplateSelection, action="templateSelection", context=context
    )
    assert result.selected_template_name == "vue-blog"
    assert [c.kwargs["model"] for c in FakeChat.instances] == ["gpt-4o", "gpt-4o-mini"]


@pytest.mark.asyncio
async def test_execute_raises_last_error_without_fallback():
    FakeChat.failing_models = {"gpt-4o-mini"}
    with pytest.raises(RuntimeError, match="unavailable"):
        await _client().execute(messages=[], schema=TemplateSelection, action="templateSelection")


@pytest.mark.asyncio
async def test_missing_api_key_is_an_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    with pytest.raises(RuntimeError, match="not configured"):
        await _client().execute(messages=[], schema=TemplateSelection, action="templateSelection")


@pytest.mark.asyncio
async def test_stream_yields_text_chunks():
    chunks = [c async for c in _client().stream(messages=[], action="blueprint")]
    assert chunks == ["Blue", "print"]
