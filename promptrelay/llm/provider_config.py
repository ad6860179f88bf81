"""Provider/runtime configuration for the relay.

Architectural role:
    Builds the immutable provider table and relay settings once at process start.
    The resulting `RelayConfig` is passed by reference into every request handler;
    nothing here is mutated after construction.

Provider kinds:
    `ProviderKind` is a closed set. Body shaping (`promptrelay.llm.composer`) and
    chunk extraction (`promptrelay.llm.stream_decoder`) implement one case per
    kind instead of carrying callables on the descriptor.

Resolution precedence (per provider):
    explicit request value (model only) > environment override > hardcoded default.

    - credential: `<NAME>_API_KEY`, then shared `LLM_API_KEY`, then the key file
      `<RELAY_KEY_DIR>/<name>.key`.
    - endpoint:   `<NAME>_URL`.
    - model:      `<NAME>_MODEL`.

Failure behavior:
    Unknown provider names never fail; they resolve to the default provider.
    A resolved provider that needs a credential but has none raises
    `ConfigurationError`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping
from urllib.parse import quote, urlencode

from dotenv import load_dotenv

from promptrelay.core.errors import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "openai"
DEFAULT_TEMPERATURE = 0.2
DEFAULT_KEY_DIR = "config"


class ProviderKind(str, Enum):
    OPENAI_COMPATIBLE = "openai_compatible"
    GEMINI = "gemini"


@dataclass(frozen=True)
class ProviderDefaults:
    kind: ProviderKind
    endpoint: str
    model: str
    requires_credential: bool = True


# OpenAI-compatible and provider-specific endpoint map.
PROVIDER_DEFAULTS: Mapping[str, ProviderDefaults] = MappingProxyType({

    "openai": ProviderDefaults(
        ProviderKind.OPENAI_COMPATIBLE,
        "https://api.openai.com/v1/chat/completions",
        "gpt-4o-mini",
    ),

    "groq": ProviderDefaults(
        ProviderKind.OPENAI_COMPATIBLE,
        "https://api.groq.com/openai/v1/chat/completions",
        "mixtral-8x7b-32768",
    ),

    "deepseek": ProviderDefaults(
        ProviderKind.OPENAI_COMPATIBLE,
        "https://api.deepseek.com/chat/completions",
        "deepseek-chat",
    ),

    "together": ProviderDefaults(
        ProviderKind.OPENAI_COMPATIBLE,
        "https://api.together.xyz/v1/chat/completions",
        "meta-llama/Llama-3.3-70B-Instruct-Turbo",
    ),

    "openrouter": ProviderDefaults(
        ProviderKind.OPENAI_COMPATIBLE,
        "https://openrouter.ai/api/v1/chat/completions",
        "openai/gpt-4o-mini",
    ),

    "mistral": ProviderDefaults(
        ProviderKind.OPENAI_COMPATIBLE,
        "https://api.mistral.ai/v1/chat/completions",
        "mistral-small-latest",
    ),

    "ollama": ProviderDefaults(
        ProviderKind.OPENAI_COMPATIBLE,
        "http://localhost:11434/v1/chat/completions",
        "neural-chat",
        requires_credential=False,
    ),

    "gemini": ProviderDefaults(
        ProviderKind.GEMINI,
        "https://generativelanguage.googleapis.com/v1beta/models",
        "gemini-2.0-flash",
    ),

})


@dataclass(frozen=True)
class ProviderDescriptor:
    """Resolved, immutable view of one upstream provider."""

    name: str
    kind: ProviderKind
    endpoint: str
    model: str
    api_key: str | None = None
    requires_credential: bool = True

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or not self.requires_credential

    def url(self, streaming: bool) -> str:
        """Return the request URL; Gemini embeds model and key in it."""
        if self.kind is ProviderKind.GEMINI:
            method = "streamGenerateContent" if streaming else "generateContent"
            query = {"key": self.api_key or ""}
            if streaming:
                query["alt"] = "sse"
            model = quote(self.model, safe="-._")
            return f"{self.endpoint.rstrip('/')}/{model}:{method}?{urlencode(query)}"
        return self.endpoint

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.kind is ProviderKind.OPENAI_COMPATIBLE and self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


def load_key(name: str, environ: Mapping[str, str], key_dir: str = DEFAULT_KEY_DIR) -> str | None:
    """Load an API key from the environment or a key file.

    Resolution order:
        1. `<NAME>_API_KEY` (for example `groq` -> `GROQ_API_KEY`).
        2. Shared `LLM_API_KEY`.
        3. Raw file contents at `<key_dir>/<name>.key`.

    Returns:
        Key string or `None` when not available.
    """
    for var in (f"{name.upper()}_API_KEY", "LLM_API_KEY"):
        value = (environ.get(var) or "").strip()
        if value:
            return value

    path = os.path.join(key_dir, f"{name}.key")
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip() or None


def _env_value(environ: Mapping[str, str], var: str) -> str | None:
    value = (environ.get(var) or "").strip()
    return value or None


@dataclass(frozen=True)
class ProviderTable:
    """Read-only name -> descriptor mapping with a designated default."""

    providers: Mapping[str, ProviderDescriptor]
    default_name: str = DEFAULT_PROVIDER

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str],
        key_dir: str = DEFAULT_KEY_DIR,
        default_name: str | None = None,
    ) -> "ProviderTable":
        providers = {}
        for name, defaults in PROVIDER_DEFAULTS.items():
            prefix = name.upper()
            providers[name] = ProviderDescriptor(
                name=name,
                kind=defaults.kind,
                endpoint=_env_value(environ, f"{prefix}_URL") or defaults.endpoint,
                model=_env_value(environ, f"{prefix}_MODEL") or defaults.model,
                api_key=load_key(name, environ, key_dir),
                requires_credential=defaults.requires_credential,
            )

        default_name = (default_name or DEFAULT_PROVIDER).strip().lower()
        if default_name not in providers:
            logger.warning("Unknown default provider %r, using %r", default_name, DEFAULT_PROVIDER)
            default_name = DEFAULT_PROVIDER

        return cls(providers=MappingProxyType(providers), default_name=default_name)

    def __iter__(self) -> Iterator[ProviderDescriptor]:
        return iter(self.providers.values())

    @property
    def default(self) -> ProviderDescriptor:
        return self.providers[self.default_name]

    def lookup(self, name: str | None) -> ProviderDescriptor:
        """Return the descriptor for `name`, or the default for absent/unknown names."""
        key = (name or "").strip().lower()
        descriptor = self.providers.get(key)
        if descriptor is None:
            if key:
                logger.debug("Unknown provider %r, using default %r", name, self.default_name)
            return self.default
        return descriptor

    def resolve(self, name: str | None, model_override: str | None = None) -> ProviderDescriptor:
        """Resolve a provider for one request.

        Args:
            name: Requested provider name; absent or unknown -> default provider.
            model_override: Explicit model from the request, applied to a copy.

        Returns:
            `ProviderDescriptor` for this request.

        Raises:
            ConfigurationError: The resolved provider has no usable credential.
        """
        descriptor = self.lookup(name)
        if not descriptor.configured:
            raise ConfigurationError(
                "No LLM API key configured.",
                details=f"Set {descriptor.name.upper()}_API_KEY or LLM_API_KEY.",
            )
        if model_override:
            descriptor = replace(descriptor, model=model_override)
        return descriptor


@dataclass(frozen=True)
class RelaySettings:
    """Process-level relay settings.

    Relevant environment variables:
        - `AI_PROVIDER`: default provider name.
        - `RELAY_TEMPERATURE`: default sampling temperature.
        - `RELAY_UPSTREAM_TIMEOUT`: upstream timeout in seconds (unset: none).
        - `RELAY_KEY_DIR`: directory holding `<name>.key` files.
        - `RELAY_CORS_ORIGINS`: comma-separated allowed origins.
    """

    default_provider: str = DEFAULT_PROVIDER
    default_temperature: float = DEFAULT_TEMPERATURE
    upstream_timeout: float | None = None
    key_dir: str = DEFAULT_KEY_DIR
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "RelaySettings":
        timeout = _env_value(environ, "RELAY_UPSTREAM_TIMEOUT")
        origins = _env_value(environ, "RELAY_CORS_ORIGINS")
        return cls(
            default_provider=_env_value(environ, "AI_PROVIDER") or DEFAULT_PROVIDER,
            default_temperature=_float_or_default(
                _env_value(environ, "RELAY_TEMPERATURE"), DEFAULT_TEMPERATURE
            ),
            upstream_timeout=_float_or_default(timeout, None),
            key_dir=_env_value(environ, "RELAY_KEY_DIR") or DEFAULT_KEY_DIR,
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) if origins else ("*",),
        )


def _float_or_default(value: str | None, default: float | None) -> float | None:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric setting value %r", value)
        return default


@dataclass(frozen=True)
class RelayConfig:
    settings: RelaySettings
    providers: ProviderTable


def load_config(environ: Mapping[str, str] | None = None) -> RelayConfig:
    """Build the process-wide relay configuration.

    When `environ` is omitted, `.env` is loaded into the process environment
    first and `os.environ` is used.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    settings = RelaySettings.from_env(environ)
    providers = ProviderTable.from_env(
        environ,
        key_dir=settings.key_dir,
        default_name=settings.default_provider,
    )
    return RelayConfig(settings=settings, providers=providers)
