"""
Image preparation tests: MIME detection, size limits, batch filtering.
"""

import base64
import os

import pytest

from codelens.config import MAX_IMAGE_BYTES
from codelens.services.images import (
    ImageContent,
    get_mime_type,
    prepare_image,
    prepare_images,
    validate_image_size,
)

from conftest import FAKE_PNG


class TestMimeType:

    @pytest.mark.parametrize("path, expected", [
        ("a.jpg", "image/jpeg"),
        ("a.JPEG", "image/jpeg"),
        ("a.gif", "image/gif"),
        ("a.webp", "image/webp"),
        ("a.png", "image/png"),
        ("a.bmp", "image/png"),
        ("no_extension", "image/png"),
    ])
    def test_extension_mapping(self, path, expected):
        assert get_mime_type(path) == expected


class TestSizeLimits:

    def test_empty_is_rejected(self):
        assert validate_image_size(0) == (False, "Image file is empty")

    def test_exact_limit_is_accepted(self):
        assert validate_image_size(MAX_IMAGE_BYTES) == (True, None)

    def test_one_byte_over_limit_is_rejected(self):
        ok, error = validate_image_size(MAX_IMAGE_BYTES + 1)
        assert not ok
        assert "too large" in error


class TestPrepareImage:

    @pytest.mark.asyncio
    async def test_encodes_file(self, make_image):
        path = make_image("shot.png")
        image = await prepare_image(path)

        assert isinstance(image, ImageContent)
        assert image.mime_type == "image/png"
        assert base64.standard_b64decode(image.data) == FAKE_PNG
        assert image.data_url.startswith("data:image/png;base64,")
        # Source file is left untouched
        assert os.path.exists(path)

    @pytest.mark.asyncio
    async def test_empty_file_returns_none(self, make_image):
        assert await prepare_image(make_image("empty.png", size=0)) is None

    @pytest.mark.asyncio
    async def test_file_at_limit_is_accepted(self, make_image):
        image = await prepare_image(make_image("big.jpg", size=MAX_IMAGE_BYTES))
        assert image is not None
        assert image.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_file_over_limit_returns_none(self, make_image):
        assert await prepare_image(make_image("huge.png", size=MAX_IMAGE_BYTES + 1)) is None

    @pytest.mark.asyncio
    async def test_missing_file_returns_none(self, tmp_path):
        assert await prepare_image(str(tmp_path / "missing.png")) is None

    @pytest.mark.asyncio
    async def test_batch_drops_failures(self, make_image, tmp_path):
        paths = [make_image("a.png"), str(tmp_path / "missing.png"), make_image("b.gif")]
        images = await prepare_images(paths)

        assert [img.path for img in images] == [paths[0], paths[2]]
        assert images[1].mime_type == "image/gif"
