"""
Provider registry and resolution.

Each backend is described by a ProviderConfig. Resolution order for the
active provider: explicit override -> $AI_PROVIDER -> first provider whose
credential looks valid -> 'openai' (reported as not configured).
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    display_name: str
    env_var: str
    models: Tuple[str, ...]
    default_model: str
    key_prefix: str = ""
    base_url: Optional[str] = None

    def get_credential(self) -> Optional[str]:
        value = os.environ.get(self.env_var, "").strip()
        return value or None

    def is_configured(self) -> bool:
        credential = self.get_credential()
        if not credential:
            return False
        return credential.startswith(self.key_prefix)


PROVIDERS: Dict[str, ProviderConfig] = {
    "openai": ProviderConfig(
        name="openai",
        display_name="OpenAI",
        env_var="OPENAI_API_KEY",
        key_prefix="sk-",
        models=("gpt-4o", "gpt-4o-mini"),
        default_model="gpt-4o",
    ),
    "openrouter": ProviderConfig(
        name="openrouter",
        display_name="OpenRouter",
        env_var="OPENROUTER_API_KEY",
        key_prefix="sk-",
        models=(
            "anthropic/claude-sonnet-4",
            "anthropic/claude-opus-4.1",
            "openai/gpt-4o",
            "openai/gpt-4o-mini",
            "x-ai/grok-4",
            "google/gemini-2.5-pro",
        ),
        default_model="openai/gpt-4o",
        base_url="https://openrouter.ai/api/v1",
    ),
    "anthropic": ProviderConfig(
        name="anthropic",
        display_name="Anthropic",
        env_var="ANTHROPIC_API_KEY",
        key_prefix="sk-ant-",
        models=("claude-sonnet-4-20250514", "claude-3-5-haiku-20241022"),
        default_model="claude-sonnet-4-20250514",
    ),
    "gemini": ProviderConfig(
        name="gemini",
        display_name="Google Gemini",
        env_var="GEMINI_API_KEY",
        models=("gemini-2.5-pro", "gemini-2.5-flash"),
        default_model="gemini-2.5-pro",
    ),
    "ollama": ProviderConfig(
        name="ollama",
        display_name="Ollama",
        # Local daemon: "configured" means a host was given
        env_var="OLLAMA_HOST",
        models=("qwen2.5vl:7b", "qwen3-vl:8b-instruct", "gemma3:12b"),
        default_model="qwen2.5vl:7b",
    ),
}

FALLBACK_PROVIDER = "openai"


def openrouter_headers() -> Dict[str, str]:
    return {
        "HTTP-Referer": os.environ.get("OPENROUTER_SITE_URL", "https://codelens.app"),
        "X-Title": os.environ.get("OPENROUTER_SITE_NAME", "CodeLens"),
    }


def get_available_providers() -> List[str]:
    return list(PROVIDERS)


def get_configured_providers() -> List[str]:
    return [name for name, config in PROVIDERS.items() if config.is_configured()]


def is_any_provider_configured() -> bool:
    return any(config.is_configured() for config in PROVIDERS.values())


def get_current_provider(override: Optional[str] = None) -> str:
    """Resolve the active provider name."""
    if override and override.lower() in PROVIDERS:
        logger.debug("Using provider override: %s", override)
        return override.lower()

    env_provider = os.environ.get("AI_PROVIDER", "").strip().lower()
    if env_provider in PROVIDERS:
        logger.debug("Using provider from environment: %s", env_provider)
        return env_provider

    for name, config in PROVIDERS.items():
        if config.is_configured():
            logger.debug("Using first configured provider: %s", name)
            return name

    logger.debug("No provider configured, defaulting to %s", FALLBACK_PROVIDER)
    return FALLBACK_PROVIDER


def get_available_models(provider_override: Optional[str] = None) -> List[str]:
    return list(PROVIDERS[get_current_provider(provider_override)].models)


def get_default_model(provider_override: Optional[str] = None) -> str:
    """Default model of the resolved provider; $AI_MODEL wins when set."""
    provider = get_current_provider(provider_override)
    env_model = os.environ.get("AI_MODEL", "").strip()
    if env_model and not provider_override:
        return env_model
    return PROVIDERS[provider].default_model


def get_next_provider(current: str) -> str:
    """Cycle through configured providers; stays put when none are configured."""
    configured = get_configured_providers()
    if not configured:
        return current
    if len(configured) == 1:
        return configured[0]
    if current not in configured:
        return configured[0]
    return configured[(configured.index(current) + 1) % len(configured)]


def get_next_model(provider: str, current: Optional[str]) -> str:
    models = list(PROVIDERS[provider].models)
    if current not in models:
        return models[0]
    return models[(models.index(current) + 1) % len(models)]


def resolve_selection(
    provider_override: Optional[str] = None,
    model_override: Optional[str] = None,
) -> Optional[Tuple[str, str]]:
    """
    Resolve (provider, model) for an analysis call.

    Returns None when the resolved provider has no usable credential.
    """
    provider = get_current_provider(provider_override)
    if not PROVIDERS[provider].is_configured():
        logger.warning("Provider %s is not configured", provider)
        return None
    model = model_override or get_default_model(provider_override)
    return provider, model


def get_provider_info(provider_override: Optional[str] = None) -> Dict[str, object]:
    provider = get_current_provider(provider_override)
    config = PROVIDERS[provider]
    return {
        "provider": provider,
        "display_name": config.display_name,
        "is_configured": config.is_configured(),
    }
