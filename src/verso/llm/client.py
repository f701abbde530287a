"""
Language model gateway.

One call in, one text-or-nothing out. Providers are explicit descriptors
tried in a fixed order; the first that answers wins. Most providers speak
the OpenAI-compatible /chat/completions dialect; Anthropic has its own.

Configuration is read once by load_providers_from_env(); the gateway itself
never touches the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

logger = logging.getLogger(__name__)

STYLE_OPENAI = "openai"
STYLE_ANTHROPIC = "anthropic"

DEFAULT_TEMPERATURE = 0.8
DEFAULT_MAX_TOKENS = 2000
DEFAULT_TIMEOUT = 30.0
ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_PROVIDER_ORDER = (
    "mistral", "anthropic", "openai", "groq", "together", "openrouter", "gemini", "deepseek",
)

# name -> (base_url, default model, style)
KNOWN_PROVIDERS: Dict[str, tuple] = {
    "mistral": ("https://api.mistral.ai/v1", "mistral-small-latest", STYLE_OPENAI),
    "anthropic": ("https://api.anthropic.com/v1", "claude-sonnet-4-20250514", STYLE_ANTHROPIC),
    "openai": ("https://api.openai.com/v1", "gpt-4o", STYLE_OPENAI),
    "groq": ("https://api.groq.com/openai/v1", "llama-3.3-70b-versatile", STYLE_OPENAI),
    "together": ("https://api.together.xyz/v1", "meta-llama/Llama-3.3-70B-Instruct-Turbo", STYLE_OPENAI),
    "openrouter": ("https://openrouter.ai/api/v1", "anthropic/claude-3.5-sonnet", STYLE_OPENAI),
    "gemini": ("https://generativelanguage.googleapis.com/v1beta/openai", "gemini-2.0-flash", STYLE_OPENAI),
    "deepseek": ("https://api.deepseek.com/v1", "deepseek-chat", STYLE_OPENAI),
}


class GatewayError(Exception):
    """Raised when a single provider fails."""

    def __init__(self, status_code: int, message: str, provider: str = ""):
        self.status_code = status_code
        self.provider = provider
        super().__init__(f"{provider or 'LLM'} API error {status_code}: {message}")


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    api_key: str
    model: str
    base_url: str
    style: str = STYLE_OPENAI
    extra_headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayResponse:
    content: str
    provider: str
    model: Optional[str] = None


def _load_dotenv() -> None:
    """Load .env file into os.environ (only vars not already set)."""
    for parent in [Path.cwd()] + list(Path(__file__).resolve().parents):
        env_path = parent / ".env"
        if env_path.exists():
            for line in env_path.read_text().splitlines():
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" in line:
                    key, value = line.split("=", 1)
                    key, value = key.strip(), value.strip().strip('"').strip("'")
                    if key and key not in os.environ:
                        os.environ[key] = value
            break  # only load the first .env found


def load_providers_from_env(order: Optional[Sequence[str]] = None) -> List[ProviderConfig]:
    """
    Build the provider chain from the environment.

    VERSO_PROVIDER_ORDER     comma list, default DEFAULT_PROVIDER_ORDER
    <NAME>_API_KEY           required; providers without a key are skipped
    <NAME>_MODEL             optional model override
    <NAME>_BASE_URL          optional endpoint override
    """
    _load_dotenv()
    if order is None:
        raw = os.environ.get("VERSO_PROVIDER_ORDER", "").strip()
        order = [p.strip().lower() for p in raw.split(",") if p.strip()] or list(DEFAULT_PROVIDER_ORDER)

    providers: List[ProviderConfig] = []
    for name in order:
        if name not in KNOWN_PROVIDERS:
            logger.warning(f"[LLMGateway] Unknown provider '{name}' in provider order, skipping")
            continue
        prefix = name.upper()
        api_key = os.environ.get(f"{prefix}_API_KEY", "").strip()
        if not api_key:
            continue
        base_url, default_model, style = KNOWN_PROVIDERS[name]
        headers = {"HTTP-Referer": os.environ.get("VERSO_APP_URL", "http://localhost:8000"),
                   "X-Title": "Verso"} if name == "openrouter" else {}
        providers.append(ProviderConfig(
            name=name,
            api_key=api_key,
            model=os.environ.get(f"{prefix}_MODEL", "").strip() or default_model,
            base_url=(os.environ.get(f"{prefix}_BASE_URL", "").strip() or base_url).rstrip("/"),
            style=style,
            extra_headers=headers,
        ))

    logger.info(f"[LLMGateway] Configured providers: {[p.name for p in providers] or 'none'}")
    return providers


def load_timeout_from_env() -> float:
    raw = os.environ.get("LLM_TIMEOUT", "").strip()
    try:
        return float(raw) if raw else DEFAULT_TIMEOUT
    except ValueError:
        logger.warning(f"[LLMGateway] Invalid LLM_TIMEOUT={raw!r}, using {DEFAULT_TIMEOUT}")
        return DEFAULT_TIMEOUT


class LLMGateway:
    """
    Ordered multi-provider chat gateway.

    send() walks the provider list; each failure is logged and the next
    provider is tried. Returns None only when every provider failed.
    An empty completion is still a response; the caller decides whether
    to retry.
    """

    def __init__(
        self,
        providers: Sequence[ProviderConfig],
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.providers = list(providers)
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_env(cls) -> "LLMGateway":
        return cls(load_providers_from_env(), timeout=load_timeout_from_env())

    @property
    def is_available(self) -> bool:
        return bool(self.providers)

    @property
    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    def send(self, messages: List[Dict[str, str]]) -> Optional[GatewayResponse]:
        if not self.providers:
            logger.warning("[LLMGateway] No providers configured")
            return None
        for provider in self.providers:
            try:
                content = self._call(provider, messages)
                logger.info(f"[LLMGateway] {provider.name} answered ({len(content)} chars)")
                return GatewayResponse(content=content, provider=provider.name, model=provider.model)
            except GatewayError as e:
                logger.warning(f"[LLMGateway] {e}; trying next provider")
        logger.warning("[LLMGateway] All providers failed")
        return None

    def send_with_retry(self, messages: List[Dict[str, str]]) -> Optional[GatewayResponse]:
        """send() plus one immediate retry when nothing usable came back."""
        response = self.send(messages)
        if response is None or not response.content.strip():
            logger.warning("[LLMGateway] Empty response, retrying once")
            response = self.send(messages)
        return response

    # ── Provider calls ────────────────────────────────────────────────────

    def _call(self, provider: ProviderConfig, messages: List[Dict[str, str]]) -> str:
        if provider.style == STYLE_ANTHROPIC:
            url, headers, body = self._anthropic_request(provider, messages)
        else:
            url, headers, body = self._openai_request(provider, messages)

        try:
            resp = requests.post(url, headers=headers, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise GatewayError(408, "Request timed out", provider.name)
        except requests.exceptions.ConnectionError as e:
            raise GatewayError(0, f"Connection error: {e}", provider.name)
        except requests.exceptions.RequestException as e:
            raise GatewayError(0, f"Request failed: {e}", provider.name)

        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After", "?")
            raise GatewayError(429, f"Rate limited (Retry-After: {retry_after}s)", provider.name)
        if resp.status_code != 200:
            raise GatewayError(resp.status_code, resp.text[:300], provider.name)

        try:
            data = resp.json()
            if provider.style == STYLE_ANTHROPIC:
                return data["content"][0].get("text") or ""
            return data["choices"][0]["message"].get("content") or ""
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise GatewayError(resp.status_code, f"Malformed response body: {e}", provider.name)

    def _openai_request(self, provider: ProviderConfig, messages: List[Dict[str, str]]):
        headers = {
            "Authorization": f"Bearer {provider.api_key}",
            "Content-Type": "application/json",
            **provider.extra_headers,
        }
        body: Dict[str, Any] = {
            "model": provider.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        return f"{provider.base_url}/chat/completions", headers, body

    def _anthropic_request(self, provider: ProviderConfig, messages: List[Dict[str, str]]):
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        turns = [{"role": m["role"], "content": m["content"]} for m in messages if m["role"] != "system"]
        if not turns:
            # The messages endpoint needs at least one user turn
            turns = [{"role": "user", "content": "Respond with the JSON now."}]
        headers = {
            "x-api-key": provider.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
            **provider.extra_headers,
        }
        body: Dict[str, Any] = {
            "model": provider.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": system,
            "messages": turns,
        }
        return f"{provider.base_url}/messages", headers, body
