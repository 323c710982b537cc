import pytest

from agentflow.errors import AgentConnectionError, InvalidSourceError, MissingCredentialsError
from agentflow.models import (
    DEFAULT_REASONING,
    CustomModel,
    ModelFamily,
    OpenAIModel,
    OpenRouterModel,
    ReasoningConfig,
)
from agentflow.source import OpenAISource, OpenRouterSource
from agentflow.transport import OpenAITransport
from agentflow.validation import check_source


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestModels:
    def test_families(self):
        assert OpenAIModel(id="gpt-4o").family is ModelFamily.OPENAI
        assert OpenRouterModel(id="x/y").family is ModelFamily.OPENROUTER
        assert CustomModel(id="llama").family is ModelFamily.CUSTOM

    def test_display_name_falls_back_to_id(self):
        assert OpenAIModel(id="gpt-4o").display_name == "gpt-4o"
        assert OpenAIModel(id="gpt-4o", name="GPT-4o").display_name == "GPT-4o"

    def test_reasoning_defaults_from_supported_parameters(self):
        model = OpenRouterModel(id="x/y", supported_parameters=["tools", "reasoning"])
        assert model.supports_reasoning
        assert model.reasoning == DEFAULT_REASONING
        assert model.reasoning.max_tokens == 2000

    def test_no_reasoning_without_support(self):
        assert OpenRouterModel(id="x/y", supported_parameters=["tools"]).reasoning is None
        assert CustomModel(id="llama").reasoning is None

    def test_explicit_reasoning_config_wins(self):
        model = OpenAIModel(id="o3", reasoning_config=ReasoningConfig(max_tokens=500))
        assert model.reasoning.max_tokens == 500


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class TestSource:
    def test_default_endpoints(self):
        assert OpenAISource(api_key="k").endpoint == "https://api.openai.com/v1"
        assert OpenRouterSource(api_key="k").endpoint == "https://openrouter.ai/api/v1"

    def test_trailing_slash_stripped(self):
        src = OpenAISource(api_key="k", base_url="http://localhost:8000/v1/")
        assert src.endpoint == "http://localhost:8000/v1"

    def test_credential_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "env-key")
        assert OpenRouterSource().credential() == "env-key"

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")
        assert OpenAISource(api_key="explicit").credential() == "explicit"

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(MissingCredentialsError, match="OPENAI_API_KEY"):
            OpenAISource().credential()

    def test_openrouter_attribution_headers(self):
        src = OpenRouterSource(
            api_key="k", app_name="My App", site_url="https://example.com",
        )
        assert src.headers() == {
            "HTTP-Referer": "https://example.com",
            "X-Title": "My App",
        }

    def test_openai_sends_no_extra_headers(self):
        assert OpenAISource(api_key="k").headers() == {}

    def test_transport_built_once(self):
        src = OpenAISource(api_key="k", base_url="http://localhost:8000/v1")
        transport = src.transport()
        assert isinstance(transport, OpenAITransport)
        assert transport.url == "http://localhost:8000/v1/chat/completions"
        assert src.transport() is transport

    def test_malformed_base_url(self):
        src = OpenAISource(api_key="k", base_url="not a url")
        with pytest.raises(AgentConnectionError, match="Invalid URL"):
            src.transport()


# ---------------------------------------------------------------------------
# Source/model validation
# ---------------------------------------------------------------------------


class TestCheckSource:
    def test_matching_family(self):
        check_source(OpenAIModel(id="gpt-4o"), OpenAISource(api_key="k"))
        check_source(OpenRouterModel(id="x/y"), OpenRouterSource(api_key="k"))

    def test_custom_model_accepted_everywhere(self):
        check_source(CustomModel(id="llama"), OpenAISource(api_key="k"))
        check_source(CustomModel(id="llama"), OpenRouterSource(api_key="k"))

    def test_mismatch(self):
        with pytest.raises(InvalidSourceError, match="gpt-4o"):
            check_source(OpenAIModel(id="gpt-4o"), OpenRouterSource(api_key="k"))

    def test_mismatch_other_direction(self):
        with pytest.raises(InvalidSourceError):
            check_source(OpenRouterModel(id="x/y"), OpenAISource(api_key="k"))
