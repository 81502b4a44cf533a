import httpx
import pytest

from llm_core.providers import create_provider
from llm_core.providers.adapter import ProtocolAdapter
from llm_core.providers.anthropic import AnthropicDialect
from llm_core.providers.gemini import GeminiDialect
from llm_core.providers.openai_compat import OpenAICompatDialect
from llm_core.providers.registry import GEMINI_CONFIG, OPENAI_CONFIG, get_provider_config


class DummySettings:
    default_provider = "openai"
    openai_api_key = None
    openai_base_url = "http://localhost:12340"
    openai_model = "qwen2.5-7b-instruct"
    anthropic_api_key = "sk-ant-test-key"
    anthropic_base_url = "https://api.anthropic.com"
    anthropic_version = "2023-06-01"
    gemini_api_key = "gemini-test-key"
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
    http_timeout = 1.0


def test_create_provider_default(monkeypatch):
    monkeypatch.setattr("llm_core.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, ProtocolAdapter)
    assert isinstance(provider._dialect, OpenAICompatDialect)
    assert provider.name == "openai"
    assert provider.model == "qwen2.5-7b-instruct"
    assert provider.owns_http_client is True


def test_create_provider_explicit(monkeypatch):
    monkeypatch.setattr("llm_core.providers.settings", DummySettings())
    provider = create_provider("Anthropic")
    assert isinstance(provider._dialect, AnthropicDialect)
    assert provider.model == "claude-3-opus-20240229"
    assert provider._api_key == "sk-ant-test-key"


def test_create_provider_uses_configured_default(monkeypatch):
    class GeminiDefault(DummySettings):
        default_provider = "gemini"

    monkeypatch.setattr("llm_core.providers.settings", GeminiDefault())
    provider = create_provider(model="gemini-1.5-flash")
    assert isinstance(provider._dialect, GeminiDialect)
    assert provider.model == "gemini-1.5-flash"
    assert provider.default_sampling.temperature == 0.35


def test_create_provider_borrows_client(monkeypatch):
    monkeypatch.setattr("llm_core.providers.settings", DummySettings())
    client = httpx.AsyncClient()
    provider = create_provider("openai", http_client=client)
    assert provider.owns_http_client is False


def test_create_provider_unknown(monkeypatch):
    monkeypatch.setattr("llm_core.providers.settings", DummySettings())
    with pytest.raises(KeyError):
        create_provider("glm")


def test_registry_lookup_is_case_insensitive():
    assert get_provider_config("OPENAI") is OPENAI_CONFIG
    assert get_provider_config("gemini") is GEMINI_CONFIG


def test_registry_url_templates():
    assert OPENAI_CONFIG.url(OPENAI_CONFIG.chat_path, "m", "http://host/") == "http://host/v1/chat/completions"
    assert (
        GEMINI_CONFIG.url(GEMINI_CONFIG.stream_path, "gemini-pro")
        == "https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:streamGenerateContent"
    )
