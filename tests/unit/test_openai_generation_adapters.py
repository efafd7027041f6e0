import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from conjure.adapters.outbound.generation_prompts import (
    GENERATOR_INSTRUCTIONS,
    NORMALIZER_INSTRUCTIONS,
)
from conjure.adapters.outbound.openai_generation_adapters import (
    OpenAICodeGeneratorAdapter,
    OpenAIConfigurationError,
    OpenAIPromptNormalizerAdapter,
    OpenAIResponseFormatError,
)


def _fake_client(output_text: object) -> SimpleNamespace:
    """responses.create だけを持つテスト用クライアント。"""
    response = SimpleNamespace(output_text=output_text)
    return SimpleNamespace(responses=SimpleNamespace(create=AsyncMock(return_value=response)))


@pytest.mark.asyncio
async def test_normalizer_returns_first_line_with_deterministic_settings() -> None:
    client = _fake_client("rain\nbecause the user asked for rain")
    adapter = OpenAIPromptNormalizerAdapter(model="tiny-model", client=client)

    key = await adapter.normalize("give me something that creates rain")

    assert key == "rain"
    kwargs = client.responses.create.await_args.kwargs
    assert kwargs["model"] == "tiny-model"
    assert kwargs["instructions"] == NORMALIZER_INSTRUCTIONS
    assert kwargs["input"] == "give me something that creates rain"
    assert kwargs["temperature"] == 0.0


@pytest.mark.asyncio
async def test_generator_returns_code_field_unmodified() -> None:
    code = "ball = object()\nregister({'body': ball, 'kind': 'circle', 'radius': 1})\n"
    client = _fake_client(json.dumps({"code": code}))
    adapter = OpenAICodeGeneratorAdapter(model="code-model", client=client)

    assert await adapter.generate("a ball") == code
    assert client.responses.create.await_args.kwargs["instructions"] == GENERATOR_INSTRUCTIONS


@pytest.mark.asyncio
async def test_generator_accepts_fenced_json() -> None:
    client = _fake_client('```json\n{"code": "x = 1"}\n```')
    adapter = OpenAICodeGeneratorAdapter(model="code-model", client=client)

    assert await adapter.generate("anything") == "x = 1"


@pytest.mark.asyncio
@pytest.mark.parametrize("output_text", ["not json", '["code"]', '{"code": ""}', None, "   "])
async def test_generator_rejects_malformed_responses(output_text: object) -> None:
    adapter = OpenAICodeGeneratorAdapter(model="code-model", client=_fake_client(output_text))

    with pytest.raises(OpenAIResponseFormatError):
        await adapter.generate("anything")


@pytest.mark.asyncio
async def test_missing_api_key_is_a_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    adapter = OpenAIPromptNormalizerAdapter(model="tiny-model")

    with pytest.raises(OpenAIConfigurationError):
        await adapter.normalize("rain")


@pytest.mark.asyncio
async def test_model_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_MODEL", "env-model")
    client = _fake_client("rain")

    await OpenAIPromptNormalizerAdapter(client=client).normalize("rain")

    assert client.responses.create.await_args.kwargs["model"] == "env-model"
