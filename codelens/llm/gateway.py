"""
Provider gateway.

Uniform analyze() contract over every backend: resolve the provider/model,
build the mode's prompts, send the request, parse the reply. Nothing raised
below this layer escapes it; every failure becomes a fully populated result
with ``error`` set.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from ..config import ANALYSIS_TIMEOUT_SECONDS
from ..services.images import ImageContent, prepare_images
from . import clients
from .parsing import parse_response
from .prompt import build_system_prompt, build_user_prompt
from .providers import PROVIDERS, get_current_provider, resolve_selection
from .results import AnalysisRequest, AnalysisResult, FailureKind, failure_result

logger = logging.getLogger(__name__)

CompleteFn = Callable[[str, str, str, str, List[ImageContent]], Awaitable[str]]


def is_service_error(error: BaseException) -> bool:
    """Errors mentioning the API (auth, quota, network) hint at credentials."""
    return "API" in str(error)


class ProviderGateway:
    """
    Sends analysis requests to the active provider.

    Args:
        complete: Coroutine performing the remote call; defaults to
                  clients.complete.
        timeout:  Seconds before the in-flight request is cancelled.
    """

    def __init__(
        self,
        complete: CompleteFn = clients.complete,
        timeout: float = ANALYSIS_TIMEOUT_SECONDS,
    ):
        self.complete = complete
        self.timeout = timeout

    async def analyze(
        self,
        request: AnalysisRequest,
        mode: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AnalysisResult:
        """Run one analysis call and return the parsed (or placeholder) result."""
        selection = resolve_selection(provider, model)
        if selection is None:
            name = get_current_provider(provider)
            config = PROVIDERS[name]
            return failure_result(
                mode,
                FailureKind.SERVICE,
                f"No API key configured for {config.display_name}. Set {config.env_var}.",
            )
        provider_name, model_name = selection

        system_prompt = build_system_prompt(mode)
        user_prompt = build_user_prompt(mode, request.prompt, request.previous_context)

        started = time.monotonic()
        try:
            reply = await asyncio.wait_for(
                self.complete(
                    provider_name, model_name, system_prompt, user_prompt, request.images
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s analysis timed out after %ss", mode, self.timeout)
            return failure_result(
                mode, FailureKind.TIMEOUT, f"Analysis timed out after {self.timeout:g} seconds"
            )
        except Exception as e:
            logger.error("%s analysis failed: %s", mode, e)
            kind = FailureKind.SERVICE if is_service_error(e) else FailureKind.UNEXPECTED
            return failure_result(mode, kind, str(e))

        try:
            result = parse_response(reply, mode)
        except Exception as e:
            logger.exception("Could not parse %s reply", mode)
            return failure_result(mode, FailureKind.UNEXPECTED, str(e))

        logger.info("%s analysis completed in %.2fs", mode, time.monotonic() - started)
        return result

    async def analyze_images(
        self,
        image_paths: List[str],
        mode: str,
        prompt: str,
        previous_context: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Prepare the image files and analyze them.

        Input problems short-circuit before any network call: an empty path
        list, or a batch where no image survives validation.
        """
        if not image_paths:
            logger.error("No image paths provided")
            return failure_result(mode, FailureKind.NO_IMAGES, "No images provided for analysis")

        logger.info("Starting %s analysis for %d images", mode, len(image_paths))
        images = await prepare_images(image_paths)
        if not images:
            logger.error("None of the images could be processed")
            return failure_result(mode, FailureKind.PROCESSING, "No valid images to analyze")

        request = AnalysisRequest(images=images, prompt=prompt, previous_context=previous_context)
        return await self.analyze(request, mode, provider, model)
