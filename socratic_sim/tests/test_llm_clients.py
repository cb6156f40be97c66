"""
Unit tests for LLM clients and provider configuration.

Provider SDKs are never reached: clients get mocked SDK objects injected.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from conftest import ScriptedLLMClient
from socratic_sim.agents import ClaudeClient, GeminiClient, OpenAIClient, create_llm_client, extract_json
from socratic_sim.config import (
    AgentModelConfig,
    ClaudeConfig,
    LLMConfiguration,
    LLMProvider,
    OpenAIConfig,
    OpenRouterConfig,
    create_default_config_from_env,
    get_models_for_agent,
    load_app_settings,
)
from socratic_sim.core import ParseError


class TestExtractJson:
    def test_plain_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_block(self):
        text = 'Here you go:\n```json\n{"goals": []}\n```\nThanks'
        assert extract_json(text) == {"goals": []}

    def test_embedded_object(self):
        assert extract_json('Sure! {"phase": "intro"} hope that helps') == {"phase": "intro"}

    def test_empty(self):
        with pytest.raises(ParseError):
            extract_json("   ")

    def test_garbage(self):
        with pytest.raises(ParseError) as exc_info:
            extract_json("no json here")
        assert exc_info.value.raw_text == "no json here"


class TestCompleteJson:
    @pytest.mark.asyncio
    async def test_requests_json_mode(self):
        llm = ScriptedLLMClient([{"ok": True}])

        result = await llm.complete_json([{"role": "user", "content": "hi"}], temperature=0.2)

        assert result == {"ok": True}
        assert llm.calls[0]["json_response"] is True
        assert llm.calls[0]["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_rejects_arrays(self):
        llm = ScriptedLLMClient([[1, 2, 3]])
        with pytest.raises(ParseError, match="Expected a JSON object"):
            await llm.complete_json([{"role": "user", "content": "hi"}])


class TestOpenAIClient:
    @pytest.mark.asyncio
    async def test_complete_passes_json_format(self):
        client = OpenAIClient(api_key="sk-test", model="gpt-4o")
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content='{"x": 1}'))]
        ))
        client._client = sdk

        result = await client.complete([{"role": "user", "content": "hi"}], max_tokens=50, json_response=True)

        assert result == '{"x": 1}'
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["max_tokens"] == 50
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_empty_content(self):
        client = OpenAIClient(api_key="sk-test", model="gpt-4o")
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))]
        ))
        client._client = sdk

        assert await client.complete([{"role": "user", "content": "hi"}], model="gpt-4o-mini") == ""
        assert "response_format" not in sdk.chat.completions.create.call_args.kwargs
        assert sdk.chat.completions.create.call_args.kwargs["model"] == "gpt-4o-mini"


class TestClaudeClient:
    def test_split_messages(self):
        system, turns = ClaudeClient._split_messages([
            {"role": "system", "content": "You are an advisor"},
            {"role": "assistant", "content": "Welcome"},
            {"role": "user", "content": "Hi"},
            {"role": "system", "content": "⚡ TRIGGERS ACTIVATED:"},
            {"role": "user", "content": "The budget"},
        ])

        assert system == "You are an advisor"
        assert turns == [
            {"role": "user", "content": "Begin."},
            {"role": "assistant", "content": "Welcome"},
            {"role": "user", "content": "Hi\n\n[Note]\n⚡ TRIGGERS ACTIVATED:\n\nThe budget"},
        ]

    @pytest.mark.asyncio
    async def test_json_instruction_added(self):
        client = ClaudeClient(api_key="sk-ant-test", model="claude-3-5-haiku-20241022")
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=SimpleNamespace(content=[SimpleNamespace(text="{}")]))
        client._client = sdk

        await client.complete(
            [{"role": "system", "content": "Evaluate"}, {"role": "user", "content": "Go"}],
            json_response=True,
        )

        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"].startswith("Evaluate")
        assert "valid JSON only" in kwargs["system"]
        assert kwargs["max_tokens"] == 4096
        assert kwargs["messages"] == [{"role": "user", "content": "Go"}]


class TestGeminiClient:
    @pytest.mark.asyncio
    async def test_generation_config(self):
        client = GeminiClient(api_key="g-test", model="gemini-1.5-flash")
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text="ok"))
        client._clients["gemini-1.5-flash"] = model

        result = await client.complete([{"role": "user", "content": "hi"}], max_tokens=10, json_response=True)

        assert result == "ok"
        transcript, = model.generate_content_async.call_args.args
        assert transcript == "[USER]\nhi"
        config = model.generate_content_async.call_args.kwargs["generation_config"]
        assert config == {"temperature": 0.7, "max_output_tokens": 10, "response_mime_type": "application/json"}


class TestClientFactory:
    def test_openai(self):
        config = LLMConfiguration(openai=OpenAIConfig(api_key=SecretStr("sk-test")), timeout_seconds=30)
        client = create_llm_client(LLMProvider.OPENAI, config, "gpt-4o-mini")

        assert isinstance(client, OpenAIClient)
        assert client.model == "gpt-4o-mini"
        assert client.timeout == 30

    def test_openrouter_uses_openai_client(self):
        config = LLMConfiguration(openrouter=OpenRouterConfig(api_key=SecretStr("or-test")))
        client = create_llm_client(LLMProvider.OPENROUTER, config, "openai/gpt-4o")

        assert isinstance(client, OpenAIClient)
        assert client.base_url == "https://openrouter.ai/api/v1"

    def test_claude(self):
        config = LLMConfiguration(claude=ClaudeConfig(api_key=SecretStr("sk-ant")))
        assert isinstance(create_llm_client(LLMProvider.CLAUDE, config, "claude-3-5-haiku-20241022"), ClaudeClient)

    def test_missing_provider_config(self):
        with pytest.raises(ValueError, match="Gemini configuration not provided"):
            create_llm_client(LLMProvider.GEMINI, LLMConfiguration(), "gemini-1.5-pro")


class TestConfiguration:
    def test_for_agent(self):
        models = AgentModelConfig(director_provider=LLMProvider.CLAUDE, director_model="claude-3-5-haiku-20241022")

        assert models.for_agent("director") == (LLMProvider.CLAUDE, "claude-3-5-haiku-20241022")
        assert models.for_agent("parser") == (LLMProvider.OPENAI, "gpt-4o-mini")
        with pytest.raises(ValueError):
            models.for_agent("validator")

    def test_validate_agent_models(self):
        config = LLMConfiguration(openai=OpenAIConfig(api_key=SecretStr("sk-test")))
        assert config.validate_agent_models() == []

        config.agent_models.actor_model = "gpt-5-imaginary"
        assert config.validate_agent_models() == ["actor: Model gpt-5-imaginary not available for openai"]

        assert len(LLMConfiguration().validate_agent_models()) == 5

    def test_models_for_agent(self):
        recommended = get_models_for_agent("director")
        assert "gpt-4o-mini" in recommended["openai"]
        assert "claude-3-5-haiku-20241022" in recommended["claude"]

    def test_config_from_env(self, monkeypatch):
        for name in ("OPENAI_API_KEY", "OPENROUTER_API_KEY", "GEMINI_API_KEY", "ANTHROPIC_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
        monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "15")

        config = create_default_config_from_env()

        assert config.get_enabled_providers() == [LLMProvider.CLAUDE]
        assert config.claude.api_key.get_secret_value() == "sk-ant-env"
        assert config.timeout_seconds == 15

    def test_app_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service-key")
        monkeypatch.setenv("SIMULATOR_DEBUG", "true")
        monkeypatch.setenv("SIMULATOR_ALLOWED_ORIGINS", "https://a.example, https://b.example")
        monkeypatch.setenv("SIMULATOR_RATE_LIMIT", "5/minute")

        settings = load_app_settings()

        assert settings.persistence_configured is True
        assert settings.debug is True
        assert settings.allowed_origins == ["https://a.example", "https://b.example"]
        assert settings.rate_limit == "5/minute"

    def test_app_settings_defaults(self, monkeypatch):
        for name in ("SUPABASE_URL", "SUPABASE_SERVICE_KEY", "SIMULATOR_DEBUG", "SIMULATOR_ALLOWED_ORIGINS",
                     "SIMULATOR_MAX_CACHED_SESSIONS", "SIMULATOR_SESSION_IDLE_SECONDS"):
            monkeypatch.delenv(name, raising=False)

        settings = load_app_settings()

        assert settings.persistence_configured is False
        assert settings.debug is False
        assert settings.max_cached_sessions == 100
        assert settings.session_idle_seconds == 1800.0
        assert "http://localhost:5173" in settings.allowed_origins
