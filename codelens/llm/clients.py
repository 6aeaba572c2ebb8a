"""
Vision model completion clients.

One non-streaming request per analysis: a system message, a user message
with the prompt text plus the inline images, and a request for JSON output.
Each adapter returns the reply text. SDK failures are re-raised as
ProviderError with "<Provider> API call failed" in the message.
"""

import logging
import time
from typing import Any, Dict, List

from ..config import MAX_TOKENS, REQUEST_TIMEOUT_SECONDS, TEMPERATURE
from ..services.images import ImageContent
from .providers import PROVIDERS, openrouter_headers

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """The remote provider call failed (auth, network, timeout, bad reply)."""


class ProviderConfigError(ProviderError):
    """The provider cannot be called because its credential is missing or invalid."""


def validate_credential(provider: str) -> str:
    """Return the provider credential or raise a descriptive error."""
    config = PROVIDERS[provider]
    credential = config.get_credential()
    if not credential:
        raise ProviderConfigError(
            f"{config.display_name} API key not found. Please set {config.env_var} environment variable."
        )
    if not credential.startswith(config.key_prefix):
        raise ProviderConfigError(
            f'Invalid {config.display_name} API key format. API key should start with "{config.key_prefix}".'
        )
    return credential


# ---------------------------------------------------------------------------
# OpenAI-compatible (OpenAI, OpenRouter)
# ---------------------------------------------------------------------------


def build_openai_messages(
    system_prompt: str, user_prompt: str, images: List[ImageContent]
) -> List[Dict[str, Any]]:
    content: List[Dict[str, Any]] = [{"type": "text", "text": user_prompt}]
    content.extend(image.to_openai_part() for image in images)
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": content},
    ]


async def _complete_openai_compatible(
    provider: str, model: str, api_key: str, system_prompt: str,
    user_prompt: str, images: List[ImageContent],
) -> str:
    from openai import AsyncOpenAI

    client_kwargs: Dict[str, Any] = {
        "api_key": api_key,
        "timeout": REQUEST_TIMEOUT_SECONDS,
    }
    if provider == "openrouter":
        client_kwargs["base_url"] = PROVIDERS["openrouter"].base_url
        client_kwargs["default_headers"] = openrouter_headers()

    async with AsyncOpenAI(**client_kwargs) as client:
        response = await client.chat.completions.create(
            model=model,
            messages=build_openai_messages(system_prompt, user_prompt, images),
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            response_format={"type": "json_object"},
        )
    if not response.choices:
        return ""
    return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Anthropic (Claude)
# ---------------------------------------------------------------------------


def build_anthropic_content(user_prompt: str, images: List[ImageContent]) -> List[Dict[str, Any]]:
    blocks: List[Dict[str, Any]] = [
        {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": image.mime_type,
                "data": image.data,
            },
        }
        for image in images
    ]
    blocks.append({"type": "text", "text": user_prompt})
    return blocks


async def _complete_anthropic(
    model: str, api_key: str, system_prompt: str,
    user_prompt: str, images: List[ImageContent],
) -> str:
    import anthropic

    async with anthropic.AsyncAnthropic(api_key=api_key, timeout=REQUEST_TIMEOUT_SECONDS) as client:
        message = await client.messages.create(
            model=model,
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            system=system_prompt,
            messages=[{"role": "user", "content": build_anthropic_content(user_prompt, images)}],
        )
    return "".join(
        block.text for block in message.content if getattr(block, "type", "") == "text"
    )


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


async def _complete_gemini(
    model: str, api_key: str, system_prompt: str,
    user_prompt: str, images: List[ImageContent],
) -> str:
    from google import genai
    from google.genai import types

    client = genai.Client(api_key=api_key)
    parts = [
        types.Part.from_bytes(data=image.to_bytes(), mime_type=image.mime_type)
        for image in images
    ]
    parts.append(types.Part.from_text(text=user_prompt))

    response = await client.aio.models.generate_content(
        model=model,
        contents=[types.Content(role="user", parts=parts)],
        config=types.GenerateContentConfig(
            system_instruction=system_prompt,
            max_output_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            response_mime_type="application/json",
        ),
    )
    return response.text or ""


# ---------------------------------------------------------------------------
# Ollama (local)
# ---------------------------------------------------------------------------


async def _complete_ollama(
    model: str, host: str, system_prompt: str,
    user_prompt: str, images: List[ImageContent],
) -> str:
    from ollama import AsyncClient

    client = AsyncClient(host=host)
    response = await client.chat(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {
                "role": "user",
                "content": user_prompt,
                "images": [image.data for image in images],
            },
        ],
        format="json",
        options={"temperature": TEMPERATURE, "num_predict": MAX_TOKENS},
    )
    return response.message.content or ""


# ---------------------------------------------------------------------------
# Public API, called by the gateway
# ---------------------------------------------------------------------------


async def complete(
    provider: str,
    model: str,
    system_prompt: str,
    user_prompt: str,
    images: List[ImageContent],
) -> str:
    """
    Send one analysis request to *provider* and return the reply text.

    Raises:
        ProviderConfigError: the credential is missing or malformed.
        ProviderError: the remote call failed.
    """
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown provider: {provider}")

    config = PROVIDERS[provider]
    credential = validate_credential(provider)

    logger.info(
        "Calling %s API (model=%s, images=%d, prompt=%d chars)",
        config.display_name, model, len(images), len(user_prompt),
    )
    started = time.monotonic()
    try:
        if provider in ("openai", "openrouter"):
            text = await _complete_openai_compatible(
                provider, model, credential, system_prompt, user_prompt, images
            )
        elif provider == "anthropic":
            text = await _complete_anthropic(
                model, credential, system_prompt, user_prompt, images
            )
        elif provider == "gemini":
            text = await _complete_gemini(
                model, credential, system_prompt, user_prompt, images
            )
        else:
            text = await _complete_ollama(
                model, credential, system_prompt, user_prompt, images
            )
    except Exception as e:
        elapsed = time.monotonic() - started
        logger.error("%s API call failed after %.2fs: %s", config.display_name, elapsed, e)
        raise ProviderError(f"{config.display_name} API call failed: {e}") from e

    logger.info(
        "%s API call completed in %.2fs (%d chars)",
        config.display_name, time.monotonic() - started, len(text),
    )
    return text
