"""
HTTP REST API endpoints.

Use for:
- Health checks and status snapshots
- Provider and model listing
- API key management
- Manual analysis trigger from tools that do not hold a websocket
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..config import AnalysisMode
from ..core.thread_pool import run_in_thread as _run_in_thread
from ..llm.key_manager import VALID_PROVIDERS, key_manager
from ..llm.providers import (
    PROVIDERS,
    get_available_models,
    get_configured_providers,
    get_current_provider,
    get_default_model,
    openrouter_headers,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _orchestrator(request: Request):
    return request.app.state.orchestrator


# ============================================
# Health & Status
# ============================================


@router.get("/health")
async def health_check():
    """Check if the server is running."""
    return {"status": "healthy"}


@router.get("/status")
async def get_status(request: Request):
    """Snapshot of mode, selection, slots and analysis flags."""
    return _orchestrator(request).get_status()


# ============================================
# Providers & Models
# ============================================


@router.get("/providers")
async def list_providers(request: Request):
    """Every known provider with its configuration state."""
    state = _orchestrator(request).state
    current = get_current_provider(state.current_provider)
    configured = set(get_configured_providers())
    return [
        {
            "name": name,
            "display_name": config.display_name,
            "env_var": config.env_var,
            "is_configured": name in configured,
            "is_current": name == current,
            "default_model": config.default_model,
        }
        for name, config in PROVIDERS.items()
    ]


@router.get("/models")
async def list_models(request: Request, provider: Optional[str] = None):
    """Models of *provider* (default: the current provider)."""
    if provider is not None and provider not in PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Invalid provider: {provider}")

    state = _orchestrator(request).state
    override = provider or state.current_provider
    current_model = state.current_model if provider is None else None
    return {
        "provider": get_current_provider(override),
        "models": get_available_models(override),
        "current": current_model or get_default_model(override),
    }


# ============================================
# API Key Management
# ============================================


class ApiKeyUpdate(BaseModel):
    """Request body for saving an API key."""

    key: str


async def validate_api_key(provider: str, api_key: str):
    """
    Make a lightweight call proving the key works. Raises on failure.

    Ollama has no key; its "credential" is the daemon host.
    """
    if provider == "anthropic":
        import anthropic

        async with anthropic.AsyncAnthropic(api_key=api_key) as client:
            await client.messages.count_tokens(
                model=PROVIDERS["anthropic"].default_model,
                messages=[{"role": "user", "content": "hi"}],
            )

    elif provider in ("openai", "openrouter"):
        import openai

        kwargs = {"api_key": api_key}
        if provider == "openrouter":
            kwargs["base_url"] = PROVIDERS["openrouter"].base_url
            kwargs["default_headers"] = openrouter_headers()
        async with openai.AsyncOpenAI(**kwargs) as client:
            await client.models.list()

    elif provider == "gemini":
        from google import genai

        client = genai.Client(api_key=api_key)
        # List models as a lightweight validation (run in thread)
        await _run_in_thread(
            lambda: list(client.models.list(config={"page_size": 1}))
        )

    elif provider == "ollama":
        import ollama

        await _run_in_thread(lambda: ollama.Client(host=api_key).list())


@router.get("/keys")
async def get_api_key_status():
    """
    Get status of all provider API keys.
    Returns which providers have keys stored and their masked values.
    """
    return key_manager.get_api_key_status()


@router.put("/keys/{provider}")
async def save_api_key(provider: str, body: ApiKeyUpdate):
    """Validate and store an API key for a provider."""
    if provider not in VALID_PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Invalid provider: {provider}")

    api_key = body.key.strip()
    if not api_key:
        raise HTTPException(status_code=400, detail="API key cannot be empty")

    prefix = PROVIDERS[provider].key_prefix
    if not api_key.startswith(prefix):
        raise HTTPException(
            status_code=400,
            detail=f'Invalid API key format. {PROVIDERS[provider].display_name} keys start with "{prefix}".',
        )

    try:
        await validate_api_key(provider, api_key)
    except Exception as e:
        error_msg = str(e)
        logger.warning("API key validation failed for %s: %s", provider, error_msg)
        raise HTTPException(
            status_code=401, detail=f"Invalid API key: {error_msg[:200]}"
        )

    key_manager.save_api_key(provider, api_key)
    return {
        "status": "saved",
        "provider": provider,
        "masked": key_manager.mask_key(api_key),
    }


@router.delete("/keys/{provider}")
async def delete_api_key(provider: str):
    """Remove a stored API key for a provider."""
    if provider not in VALID_PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Invalid provider: {provider}")

    key_manager.delete_api_key(provider)
    return {"status": "deleted", "provider": provider}


# ============================================
# Analysis
# ============================================


class AnalyzeRequest(BaseModel):
    """Request body for a manual analysis."""

    prompt: Optional[str] = None
    mode: Optional[str] = None


@router.post("/analyze", status_code=202)
async def analyze(request: Request, body: AnalyzeRequest):
    """
    Start an analysis of the current screenshots.

    Returns immediately; the result is broadcast over the websocket.
    """
    orchestrator = _orchestrator(request)

    if body.mode is not None:
        if body.mode not in AnalysisMode.ALL:
            raise HTTPException(status_code=400, detail=f"Invalid mode: {body.mode}")
        if body.mode != orchestrator.state.current_mode:
            await orchestrator.set_mode(body.mode)

    if not orchestrator.state.screenshot_paths:
        raise HTTPException(status_code=409, detail="No screenshots to analyze")

    orchestrator.spawn(orchestrator.trigger_analysis(body.prompt))
    return {
        "status": "queued" if orchestrator.state.is_analysis_running else "started",
        "mode": orchestrator.state.current_mode,
        "screenshots": len(orchestrator.state.screenshot_paths),
    }
