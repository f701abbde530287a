"""
Tests for the model layer: gateway, JSON recovery, analyzer and generator.

The network is never touched: requests.post is patched, and the analyzer
and generator run against the scripted gateway from conftest.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from verso.core.context import (
    INTENT_AUTO,
    INTENT_CALM,
    LAYER_CORE_WOUND,
    LAYER_SURFACE,
    AnalysisResult,
    ChatMessage,
    EngineDecision,
)
from verso.llm import client as client_module
from verso.llm.analyzer import ANALYSIS_PROMPT, EmotionAnalyzer
from verso.llm.client import (
    ANTHROPIC_VERSION,
    DEFAULT_TIMEOUT,
    STYLE_ANTHROPIC,
    LLMGateway,
    ProviderConfig,
    load_providers_from_env,
    load_timeout_from_env,
)
from verso.llm.generator import (
    ResponseBrief,
    ResponseGenerator,
    build_regeneration_prompt,
    build_response_prompt,
)
from verso.llm.parsing import parse_ai_json


# =============================================================================
# FIXTURES
# =============================================================================

def _http_response(status=200, payload=None, text="", headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload if payload is not None else {}
    resp.text = text
    resp.headers = headers or {}
    return resp


def _openai_payload(content):
    return {"choices": [{"message": {"content": content}}]}


@pytest.fixture
def openai_provider():
    return ProviderConfig(name="mistral", api_key="key-1", model="mistral-small-latest",
                          base_url="https://api.mistral.ai/v1")


@pytest.fixture
def backup_provider():
    return ProviderConfig(name="groq", api_key="key-2", model="llama", base_url="https://api.groq.com/openai/v1")


@pytest.fixture
def anthropic_provider():
    return ProviderConfig(name="anthropic", api_key="key-3", model="claude", base_url="https://api.anthropic.com/v1",
                          style=STYLE_ANTHROPIC)


@pytest.fixture
def clean_env(monkeypatch):
    """No provider keys and no .env loading."""
    monkeypatch.setattr(client_module, "_load_dotenv", lambda: None)
    for name in client_module.KNOWN_PROVIDERS:
        prefix = name.upper()
        for suffix in ("_API_KEY", "_MODEL", "_BASE_URL"):
            monkeypatch.delenv(prefix + suffix, raising=False)
    monkeypatch.delenv("VERSO_PROVIDER_ORDER", raising=False)
    monkeypatch.delenv("LLM_TIMEOUT", raising=False)
    return monkeypatch


def _brief(**overrides):
    values = dict(
        user_text="My manager moved the deadline",
        analysis=AnalysisResult("Deadline moved", "They don't trust me", "Not being good enough",
                                "Reassurance", "Never being enough"),
        layer=LAYER_SURFACE,
        decision=EngineDecision("MAP", "REFLECT_MAP", 0.65, ("distortionLikely=0.00 -> MAP",), True),
    )
    values.update(overrides)
    return ResponseBrief(**values)


# =============================================================================
# JSON RECOVERY
# =============================================================================

class TestParseAiJson:
    @pytest.mark.parametrize("content,expected", [
        ('{"a": 1}', {"a": 1}),
        ('```json\n{"reframe": "x"}\n```', {"reframe": "x"}),
        ('Sure! Here it is: {"a": {"b": 2}} hope that helps', {"a": {"b": 2}}),
    ])
    def test_recovers_objects(self, content, expected):
        assert parse_ai_json(content) == expected

    @pytest.mark.parametrize("content", [None, "", "   ", "not json", "[1, 2]", '"text"', "{broken"])
    def test_rejects_non_objects(self, content):
        assert parse_ai_json(content) is None


# =============================================================================
# GATEWAY
# =============================================================================

class TestGateway:
    def test_no_providers(self):
        gateway = LLMGateway([])
        assert not gateway.is_available
        assert gateway.send([{"role": "user", "content": "hi"}]) is None

    @patch("verso.llm.client.requests.post")
    def test_openai_style_call(self, mock_post, openai_provider):
        mock_post.return_value = _http_response(payload=_openai_payload("hello"))
        gateway = LLMGateway([openai_provider], timeout=12)

        response = gateway.send([{"role": "user", "content": "hi"}])

        assert response.content == "hello"
        assert response.provider == "mistral"
        assert response.model == "mistral-small-latest"
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.mistral.ai/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer key-1"
        assert kwargs["json"]["model"] == "mistral-small-latest"
        assert kwargs["json"]["temperature"] == pytest.approx(0.8)
        assert kwargs["json"]["max_tokens"] == 2000
        assert kwargs["timeout"] == 12

    @patch("verso.llm.client.requests.post")
    def test_anthropic_style_call(self, mock_post, anthropic_provider):
        mock_post.return_value = _http_response(payload={"content": [{"type": "text", "text": "yo"}]})
        gateway = LLMGateway([anthropic_provider])

        response = gateway.send([
            {"role": "system", "content": "be kind"},
            {"role": "user", "content": "hi"},
        ])

        assert response.content == "yo"
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.anthropic.com/v1/messages"
        assert kwargs["headers"]["x-api-key"] == "key-3"
        assert kwargs["headers"]["anthropic-version"] == ANTHROPIC_VERSION
        assert kwargs["json"]["system"] == "be kind"
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "hi"}]

    @patch("verso.llm.client.requests.post")
    def test_anthropic_system_only_gets_user_turn(self, mock_post, anthropic_provider):
        mock_post.return_value = _http_response(payload={"content": [{"text": "{}"}]})
        LLMGateway([anthropic_provider]).send([{"role": "system", "content": "regenerate"}])
        body = mock_post.call_args.kwargs["json"]
        assert len(body["messages"]) == 1
        assert body["messages"][0]["role"] == "user"

    @patch("verso.llm.client.requests.post")
    def test_falls_through_on_error(self, mock_post, openai_provider, backup_provider):
        mock_post.side_effect = [
            _http_response(status=500, text="boom"),
            _http_response(payload=_openai_payload("from backup")),
        ]
        response = LLMGateway([openai_provider, backup_provider]).send([{"role": "user", "content": "hi"}])
        assert response.provider == "groq"
        assert response.content == "from backup"
        assert mock_post.call_count == 2

    @pytest.mark.parametrize("error", [
        requests.exceptions.Timeout("slow"),
        requests.exceptions.ConnectionError("down"),
        requests.exceptions.ChunkedEncodingError("broken stream"),
        requests.exceptions.TooManyRedirects("loop"),
        requests.exceptions.MissingSchema("No scheme supplied"),
    ])
    def test_falls_through_on_transport_error(self, error, openai_provider, backup_provider):
        with patch("verso.llm.client.requests.post") as mock_post:
            mock_post.side_effect = [error, _http_response(payload=_openai_payload("ok"))]
            response = LLMGateway([openai_provider, backup_provider]).send([{"role": "user", "content": "hi"}])
        assert response.provider == "groq"

    @patch("verso.llm.client.requests.post")
    def test_rate_limit_and_malformed_body(self, mock_post, openai_provider, backup_provider):
        mock_post.side_effect = [
            _http_response(status=429, headers={"Retry-After": "5"}),
            _http_response(payload={"unexpected": True}),
        ]
        assert LLMGateway([openai_provider, backup_provider]).send([{"role": "user", "content": "hi"}]) is None

    @patch("verso.llm.client.requests.post")
    def test_unexpected_request_error_returns_none(self, mock_post, openai_provider):
        mock_post.side_effect = requests.exceptions.InvalidURL("bad host")
        assert LLMGateway([openai_provider]).send([{"role": "user", "content": "hi"}]) is None

    @patch("verso.llm.client.requests.post")
    def test_message_of_wrong_shape_is_malformed(self, mock_post, openai_provider, backup_provider):
        mock_post.side_effect = [
            _http_response(payload={"choices": [{"message": "plain string"}]}),
            _http_response(payload=_openai_payload("from backup")),
        ]
        response = LLMGateway([openai_provider, backup_provider]).send([{"role": "user", "content": "hi"}])
        assert response.content == "from backup"

    @patch("verso.llm.client.requests.post")
    def test_empty_completion_is_still_a_response(self, mock_post, openai_provider, backup_provider):
        mock_post.return_value = _http_response(payload=_openai_payload(None))
        response = LLMGateway([openai_provider, backup_provider]).send([{"role": "user", "content": "hi"}])
        assert response.content == ""
        assert mock_post.call_count == 1

    @patch("verso.llm.client.requests.post")
    def test_send_with_retry_retries_once(self, mock_post, openai_provider):
        mock_post.side_effect = [
            _http_response(payload=_openai_payload("   ")),
            _http_response(payload=_openai_payload("second try")),
        ]
        response = LLMGateway([openai_provider]).send_with_retry([{"role": "user", "content": "hi"}])
        assert response.content == "second try"
        assert mock_post.call_count == 2


class TestEnvConfig:
    def test_default_order_skips_missing_keys(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "o-key")
        clean_env.setenv("MISTRAL_API_KEY", "m-key")
        providers = load_providers_from_env()
        assert [p.name for p in providers] == ["mistral", "openai"]
        assert providers[0].model == "mistral-small-latest"

    def test_explicit_order_and_overrides(self, clean_env):
        clean_env.setenv("VERSO_PROVIDER_ORDER", "anthropic, bogus, groq")
        clean_env.setenv("ANTHROPIC_API_KEY", "a-key")
        clean_env.setenv("ANTHROPIC_MODEL", "claude-test")
        clean_env.setenv("ANTHROPIC_BASE_URL", "https://proxy.example/v1/")
        clean_env.setenv("GROQ_API_KEY", "g-key")
        providers = load_providers_from_env()
        assert [p.name for p in providers] == ["anthropic", "groq"]
        assert providers[0].style == STYLE_ANTHROPIC
        assert providers[0].model == "claude-test"
        assert providers[0].base_url == "https://proxy.example/v1"

    def test_openrouter_headers(self, clean_env):
        clean_env.setenv("OPENROUTER_API_KEY", "r-key")
        clean_env.setenv("VERSO_APP_URL", "https://verso.example")
        (provider,) = load_providers_from_env(order=["openrouter"])
        assert provider.extra_headers["HTTP-Referer"] == "https://verso.example"

    def test_no_keys_means_unavailable(self, clean_env):
        assert not LLMGateway(load_providers_from_env()).is_available

    @pytest.mark.parametrize("raw,expected", [("12", 12.0), ("abc", DEFAULT_TIMEOUT), ("", DEFAULT_TIMEOUT)])
    def test_timeout(self, clean_env, raw, expected):
        clean_env.setenv("LLM_TIMEOUT", raw)
        assert load_timeout_from_env() == expected


# =============================================================================
# ANALYZER
# =============================================================================

class TestAnalyzer:
    def test_parses_analysis(self, scripted_gateway, analysis_reply):
        analyzer = EmotionAnalyzer(scripted_gateway(analysis=analysis_reply))
        result = analyzer.analyze("My plan fell through")
        assert result.trigger_event == "A plan fell through"
        assert result.core_wound == "Never being enough"

    def test_repairs_partial_analysis(self, scripted_gateway):
        analyzer = EmotionAnalyzer(scripted_gateway(analysis={"trigger_event": "  Missed bus ", "core_wound": 7}))
        result = analyzer.analyze("I missed the bus")
        assert result.trigger_event == "Missed bus"
        assert result.underlying_fear == EmotionAnalyzer.DEFAULT_ANALYSIS["underlying_fear"]
        assert result.core_wound == ""

    def test_garbage_falls_back_after_retry(self, scripted_gateway):
        gateway = scripted_gateway(analysis="I'd rather not")
        result = EmotionAnalyzer(gateway).analyze("hello there")
        assert result == EmotionAnalyzer(gateway).default_analysis()
        assert gateway.calls["analysis"] == 1

    def test_empty_reply_is_retried(self, scripted_gateway, analysis_reply):
        gateway = scripted_gateway(analysis=[None, analysis_reply])
        result = EmotionAnalyzer(gateway).analyze("hello there")
        assert gateway.calls["analysis"] == 2
        assert result.emotional_need == "Reassurance"

    def test_history_window(self, scripted_gateway):
        history = [ChatMessage("user" if i % 2 == 0 else "assistant", f"turn {i}") for i in range(10)]
        messages = EmotionAnalyzer(scripted_gateway()).build_messages("now", history)
        assert len(messages) == 8
        assert messages[0] == {"role": "system", "content": ANALYSIS_PROMPT}
        assert messages[1]["content"] == "turn 4"
        assert messages[-1] == {"role": "user", "content": "now"}


# =============================================================================
# GENERATOR
# =============================================================================

class TestResponsePrompt:
    def test_includes_analysis_and_decision(self):
        prompt = build_response_prompt(_brief(original_trigger="The deadline moved"))
        assert 'ORIGINAL TRIGGER: "The deadline moved"' in prompt
        assert "They don't trust me" in prompt
        assert "APPROACH: MAP / REFLECT_MAP" in prompt
        assert "CURRENT LAYER: SURFACE" in prompt
        assert "INTENT: AUTO" in prompt

    def test_no_question_rule(self):
        decision = EngineDecision("PRESENCE", "VALIDATE_ONLY", 0.75, ("thanksOrRelief=true",), False)
        prompt = build_response_prompt(_brief(decision=decision))
        assert 'Do NOT ask a question. Set "question" to "".' in prompt

    def test_lists_only_recent_history(self):
        questions = tuple(f"Q-{i:02d}?" for i in range(12))
        reframes = tuple(f"R-{i:02d}" for i in range(12))
        prompt = build_response_prompt(_brief(previous_questions=questions, previous_reframes=reframes))
        assert '"Q-09?"' in prompt and '"Q-10?"' not in prompt
        assert '"R-07"' in prompt and '"R-08"' not in prompt

    def test_core_layer_guidance(self):
        prompt = build_response_prompt(_brief(layer=LAYER_CORE_WOUND))
        assert 'thoughtPattern MUST be exactly "Core Belief"' in prompt

    def test_grounding_prompt(self):
        prompt = build_response_prompt(_brief(grounding_mode=True, intent=INTENT_CALM))
        assert "grounding or comforting" in prompt
        assert "INTENT: CALM" in prompt
        assert "They don't trust me" not in prompt

    def test_unknown_intent_uses_auto_block(self):
        assert "INTENT: AUTO" in build_response_prompt(_brief(intent="SOMETHING"))

    def test_regeneration_prompt(self):
        prompt = build_regeneration_prompt(_brief(previous_reframes=("Old reframe",)))
        assert "- Old reframe" in prompt
        assert "- (none)" in prompt
        assert "Grounding mode: false" in prompt


class TestGenerator:
    def test_generate_returns_response(self, scripted_gateway):
        gateway = scripted_gateway(response={"reframe": "x"})
        response = ResponseGenerator(gateway).generate(_brief())
        assert response.provider == "scripted"
        assert gateway.calls["response"] == 1

    def test_generate_none_after_two_empty(self, scripted_gateway):
        gateway = scripted_gateway(response="  ")
        assert ResponseGenerator(gateway).generate(_brief()) is None
        assert gateway.calls["response"] == 2

    def test_regenerate_is_single_call(self, scripted_gateway):
        gateway = scripted_gateway(regeneration=None)
        assert ResponseGenerator(gateway).regenerate(_brief(intent=INTENT_AUTO)) is None
        assert gateway.calls["regeneration"] == 1
        kind, messages = gateway.sent[0]
        assert kind == "regeneration"
        assert [m["role"] for m in messages] == ["system"]
