"""Factory for creating LangChain chat models.

Uses LangChain's init_chat_model abstraction for unified provider
instantiation. API keys are resolved from kwargs or the environment
before the unified call.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from parley.errors import BackendError
from parley.observability.logging import get_logger

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

log = get_logger(__name__)

# Provider default models - None means model must be explicitly specified
PROVIDER_DEFAULTS: dict[str, str | None] = {
    "ollama": None,
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini-2.5-flash",
}

_KNOWN_PROVIDERS = frozenset(PROVIDER_DEFAULTS)

# Environment variable holding each provider's credentials (or host)
_PROVIDER_ENV: dict[str, str] = {
    "ollama": "OLLAMA_HOST",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}

_PROVIDER_PACKAGES: dict[str, str] = {
    "ollama": "langchain-ollama",
    "openai": "langchain-openai",
    "anthropic": "langchain-anthropic",
    "google": "langchain-google-genai",
}


def get_default_model(provider_name: str) -> str | None:
    """Get the default model for a provider, or None if it must be explicit."""
    return PROVIDER_DEFAULTS.get(_normalize_provider(provider_name))


def parse_provider(provider_string: str) -> tuple[str, str]:
    """Split a ``provider/model`` string.

    A bare provider name resolves to that provider's default model.

    Raises:
        BackendError: If the provider is unknown or has no default model.
    """
    if "/" in provider_string:
        provider, model = provider_string.split("/", 1)
    else:
        provider, model = provider_string, ""
    provider = _normalize_provider(provider)
    if provider not in _KNOWN_PROVIDERS:
        raise BackendError(provider, f"Unknown provider: {provider}")
    if not model:
        default = PROVIDER_DEFAULTS[provider]
        if default is None:
            raise BackendError(provider, "Model must be specified as provider/model")
        model = default
    return provider, model


def create_chat_model(provider_name: str, model: str, **kwargs: Any) -> BaseChatModel:
    """Create a LangChain BaseChatModel.

    Args:
        provider_name: Provider identifier (ollama, openai, anthropic, google).
        model: Model name/identifier.
        **kwargs: Additional provider-specific options.

    Returns:
        Configured BaseChatModel.

    Raises:
        BackendError: If the provider is unknown, misconfigured, or its
            LangChain integration package is not installed.
    """
    provider = _normalize_provider(provider_name)
    if provider not in _KNOWN_PROVIDERS:
        log.error("provider_unknown", provider=provider)
        raise BackendError(provider, f"Unknown provider: {provider}")

    kwargs = _resolve_credentials(provider, kwargs)

    try:
        from langchain.chat_models import init_chat_model

        chat_model: BaseChatModel = init_chat_model(
            model=model,
            model_provider=_map_provider_for_init(provider),
            **kwargs,
        )
    except ImportError as e:
        package = _PROVIDER_PACKAGES[provider]
        log.error("provider_import_error", provider=provider, package=package)
        raise BackendError(provider, f"{package} not installed. Run: pip install {package}") from e

    log.info("chat_model_created", provider=provider, model=model)
    return chat_model


def _resolve_credentials(provider: str, kwargs: dict[str, Any]) -> dict[str, Any]:
    """Fill in the API key (or Ollama host) from the environment.

    Raises:
        BackendError: If no credential is available.
    """
    kwargs = dict(kwargs)
    env_var = _PROVIDER_ENV[provider]

    if provider == "ollama":
        host = kwargs.pop("host", None) or os.getenv(env_var)
        if not host:
            log.error("provider_config_error", provider=provider, missing=env_var)
            raise BackendError(provider, f"{env_var} not configured. Set {env_var}.")
        kwargs["base_url"] = host
        return kwargs

    api_key = kwargs.get("api_key") or os.getenv(env_var)
    if not api_key:
        log.error("provider_config_error", provider=provider, missing=env_var)
        raise BackendError(provider, f"API key required. Set {env_var} environment variable.")
    kwargs["api_key"] = api_key
    return kwargs


def _map_provider_for_init(provider: str) -> str:
    # init_chat_model expects 'google_genai' not 'google'
    if provider == "google":
        return "google_genai"
    return provider


def _normalize_provider(provider_name: str) -> str:
    name = provider_name.strip().lower()
    if name == "gemini":
        return "google"
    return name
