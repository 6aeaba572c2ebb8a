"""
Provider gateway tests.

The remote call is replaced by FakeComplete; every failure must come back as
a populated result, never as an exception.
"""

import asyncio

import pytest

from codelens.config import AnalysisMode
from codelens.llm.clients import ProviderError, build_anthropic_content, build_openai_messages
from codelens.llm.gateway import ProviderGateway, is_service_error
from codelens.llm.results import CodeAnalysisResult, GeneralAnalysisResult

from conftest import GENERAL_REPLY, FakeComplete


def _all_fields_filled(result):
    return all(isinstance(v, str) and v for v in result.to_dict().values())


class TestAnalyzeImages:

    @pytest.mark.asyncio
    async def test_success_passes_prompt_and_images(self, openai_key, fake_complete, make_image):
        gateway = ProviderGateway(complete=fake_complete)
        path = make_image("a.png")

        result = await gateway.analyze_images([path], AnalysisMode.CODE, "Find the bug")

        assert isinstance(result, CodeAnalysisResult)
        assert result.error is None
        assert result.language == "Python"
        call = fake_complete.calls[0]
        assert call["provider"] == "openai"
        assert call["model"] == "gpt-4o"
        assert "Task: Find the bug" in call["user_prompt"]
        assert [img.path for img in call["images"]] == [path]

    @pytest.mark.asyncio
    async def test_previous_context_reaches_the_prompt(self, openai_key, make_image):
        fake = FakeComplete(reply=GENERAL_REPLY)
        gateway = ProviderGateway(complete=fake)

        result = await gateway.analyze_images(
            [make_image()], AnalysisMode.GENERAL, "", previous_context='{"answer": "41"}'
        )

        assert isinstance(result, GeneralAnalysisResult)
        assert result.answer == "42"
        assert 'Previous context: {"answer": "41"}' in fake.calls[0]["user_prompt"]

    @pytest.mark.asyncio
    async def test_no_paths_short_circuits(self, openai_key, fake_complete):
        gateway = ProviderGateway(complete=fake_complete)
        result = await gateway.analyze_images([], AnalysisMode.CODE, "x")

        assert result.error
        assert result.code == "No images provided for analysis"
        assert fake_complete.calls == []

    @pytest.mark.asyncio
    async def test_no_valid_images_short_circuits(self, openai_key, fake_complete, make_image):
        gateway = ProviderGateway(complete=fake_complete)
        result = await gateway.analyze_images(
            [make_image("empty.png", size=0)], AnalysisMode.GENERAL, "x"
        )

        assert result.error
        assert result.answer == "Failed to process images"
        assert _all_fields_filled(result)
        assert fake_complete.calls == []

    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_a_service_failure(self, fake_complete, make_image):
        gateway = ProviderGateway(complete=fake_complete)
        result = await gateway.analyze_images([make_image()], AnalysisMode.CODE, "x")

        assert result.code == "AI service unavailable"
        assert "OPENAI_API_KEY" in result.error
        assert fake_complete.calls == []


class TestFailures:

    @pytest.mark.asyncio
    async def test_api_error_is_service_failure(self, openai_key, make_image):
        fake = FakeComplete(error=ProviderError("OpenAI API call failed: 401"))
        result = await ProviderGateway(complete=fake).analyze_images(
            [make_image()], AnalysisMode.CODE, "x"
        )

        assert result.code == "AI service unavailable"
        assert result.time_complexity == "Analysis unavailable"
        assert result.space_complexity == "Analysis unavailable"
        assert "401" in result.error

    @pytest.mark.asyncio
    async def test_other_error_is_generic_failure(self, openai_key, make_image):
        fake = FakeComplete(error=ValueError("boom"))
        result = await ProviderGateway(complete=fake).analyze_images(
            [make_image()], AnalysisMode.GENERAL, "x"
        )

        assert result.error == "boom"
        assert _all_fields_filled(result)

    @pytest.mark.asyncio
    async def test_timeout_cancels_the_request(self, openai_key, make_image):
        fake = FakeComplete()
        fake.gate = asyncio.Event()  # never released
        gateway = ProviderGateway(complete=fake, timeout=0.05)

        result = await gateway.analyze_images([make_image()], AnalysisMode.GENERAL, "x")

        assert result.answer == "Analysis failed or timed out"
        assert result.explanation == "Unable to complete analysis"
        assert result.test == "No test generated"
        assert "timed out" in result.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", AnalysisMode.ALL)
    async def test_failures_are_fully_populated(self, mode, openai_key, make_image):
        fake = FakeComplete(error=RuntimeError("network down"))
        result = await ProviderGateway(complete=fake).analyze_images([make_image()], mode, "x")
        assert _all_fields_filled(result)


def test_service_error_classification():
    assert is_service_error(Exception("Anthropic API call failed: overloaded"))
    assert is_service_error(Exception("OpenAI API key not found"))
    assert not is_service_error(Exception("connection reset"))


class TestMessageBuilders:

    @pytest.mark.asyncio
    async def test_openai_messages_inline_images(self, make_image):
        from codelens.services.images import prepare_image

        image = await prepare_image(make_image())
        messages = build_openai_messages("sys", "user", [image])

        assert messages[0] == {"role": "system", "content": "sys"}
        parts = messages[1]["content"]
        assert parts[0] == {"type": "text", "text": "user"}
        assert parts[1]["image_url"]["url"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_anthropic_content_puts_text_last(self, make_image):
        from codelens.services.images import prepare_image

        image = await prepare_image(make_image())
        blocks = build_anthropic_content("user", [image, image])

        assert [b["type"] for b in blocks] == ["image", "image", "text"]
        assert blocks[0]["source"]["media_type"] == "image/png"
