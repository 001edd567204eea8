"""Tests for the encoder and the format probe."""

import io
from unittest import mock

import pytest
from PIL import Image

from gallery_ingest.core.encoder import (
    ImageEncoder,
    quality_to_pillow,
    supports_target_format,
)
from gallery_ingest.core.exceptions import ConfigurationError, EncodeError


def test_jpeg_is_always_supported():
    assert supports_target_format("JPEG") is True
    assert supports_target_format("jpeg") is True


def test_unknown_format_not_supported():
    assert supports_target_format("BOGUS") is False


@pytest.mark.parametrize("quality,expected", [(0.0, 0), (0.85, 85), (1.0, 100)])
def test_quality_mapping(quality, expected):
    assert quality_to_pillow(quality) == expected


@pytest.mark.parametrize("quality", [-0.1, 1.5, 85])
def test_quality_out_of_range(quality):
    with pytest.raises(ConfigurationError):
        quality_to_pillow(quality)


class TestImageEncoder:
    """Tests for ImageEncoder."""

    def test_encode_round_trips_dimensions(self):
        encoder = ImageEncoder()
        surface = Image.new("RGB", (64, 48), (10, 120, 200))

        data = encoder.encode(surface, 0.85)

        decoded = Image.open(io.BytesIO(data))
        assert decoded.size == (64, 48)
        assert decoded.format == encoder.format

    def test_probe_picks_target_when_available(self):
        with mock.patch(
            "gallery_ingest.core.encoder.supports_target_format", return_value=True
        ):
            encoder = ImageEncoder("webp", "JPEG")

        assert encoder.format == "WEBP"
        assert encoder.extension == "webp"
        assert encoder.content_type == "image/webp"

    def test_probe_falls_back_when_target_missing(self):
        with mock.patch(
            "gallery_ingest.core.encoder.supports_target_format",
            side_effect=lambda fmt: fmt.upper() == "JPEG",
        ) as probe:
            encoder = ImageEncoder("WEBP", "JPEG")

        assert encoder.format == "JPEG"
        assert encoder.extension == "jpg"
        assert probe.call_count == 2

    def test_probe_fails_without_any_format(self):
        with mock.patch(
            "gallery_ingest.core.encoder.supports_target_format", return_value=False
        ):
            with pytest.raises(EncodeError):
                ImageEncoder("WEBP", "JPEG")

    def test_probe_runs_once_not_per_call(self):
        encoder = ImageEncoder("JPEG", None)
        surface = Image.new("RGB", (16, 16))

        with mock.patch("gallery_ingest.core.encoder.supports_target_format") as probe:
            encoder.encode(surface)
            encoder.encode(surface)

        probe.assert_not_called()

    def test_jpeg_converts_alpha_surfaces(self):
        encoder = ImageEncoder("JPEG", None)
        surface = Image.new("RGBA", (20, 20), (255, 0, 0, 128))

        data = encoder.encode(surface, 0.5)

        assert Image.open(io.BytesIO(data)).mode == "RGB"

    def test_codec_failure_raises_encode_error(self):
        encoder = ImageEncoder("JPEG", None)
        surface = mock.Mock(spec=Image.Image)
        surface.mode = "RGB"
        surface.save.side_effect = OSError("encoder error -2")

        with pytest.raises(EncodeError, match="encoder error"):
            encoder.encode(surface)

    def test_empty_output_raises_encode_error(self):
        encoder = ImageEncoder("JPEG", None)
        surface = mock.Mock(spec=Image.Image)
        surface.mode = "RGB"

        with pytest.raises(EncodeError, match="no data"):
            encoder.encode(surface)
