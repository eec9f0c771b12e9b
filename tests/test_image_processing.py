"""Tests for single-asset download, crop and measurement."""

import io
from unittest.mock import MagicMock, patch

import pytest
import requests
from PIL import Image

from image_processing import (
    ImageProcessingError,
    apply_crop_transform,
    crop_rectangle,
    download_and_process_image,
    download_figma_image,
    generate_image_css_variables,
    get_image_dimensions,
)

HALF_CENTER = [[0.5, 0, 0.25], [0, 0.5, 0.25]]


def png_bytes(width, height):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 10, 10)).save(buffer, format="PNG")
    return buffer.getvalue()


def mock_response(data=b"", error=None):
    response = MagicMock()
    response.iter_content.return_value = [data]
    if error is not None:
        response.raise_for_status.side_effect = error
    context = MagicMock()
    context.__enter__.return_value = response
    context.__exit__.return_value = False
    return context


class TestDownload:
    def test_writes_file_without_leftovers(self, tmp_path):
        with patch("image_processing.requests.get", return_value=mock_response(b"abc")) as mock_get:
            path = download_figma_image("a.png", tmp_path / "out", "https://cdn/a")

        assert mock_get.call_args.kwargs["stream"] is True
        assert (tmp_path / "out" / "a.png").read_bytes() == b"abc"
        assert path == str(tmp_path / "out" / "a.png")
        assert [p.name for p in (tmp_path / "out").iterdir()] == ["a.png"]

    def test_http_error_leaves_no_file(self, tmp_path):
        failing = mock_response(error=requests.HTTPError("404 Client Error"))
        with patch("image_processing.requests.get", return_value=failing):
            with pytest.raises(ImageProcessingError, match="a.png"):
                download_figma_image("a.png", tmp_path, "https://cdn/a")
        assert list(tmp_path.iterdir()) == []

    def test_connection_error_wrapped(self, tmp_path):
        with patch("image_processing.requests.get", side_effect=requests.ConnectionError("down")):
            with pytest.raises(ImageProcessingError):
                download_figma_image("a.png", tmp_path, "https://cdn/a")


class TestCropRectangle:
    def test_centered_half(self):
        assert crop_rectangle(HALF_CENTER, 100, 100) == (25, 25, 75, 75)

    def test_clamped_to_image(self):
        assert crop_rectangle([[0.5, 0, 0.75], [0, 1, 0]], 100, 100) == (75, 0, 100, 100)

    @pytest.mark.parametrize(
        "transform",
        [
            [[0, 0, 0], [0, 1, 0]],
            [[1, 0, 1.5], [0, 1, 0]],
            [[0.5, 0, -0.5], [0, 1, 0]],
            [[1, 0, 0], [0, 0.5, -0.1]],
            [[0.5, 0, 1], [0, 1, 0]],
            [[1, 0, 0]],
            None,
        ],
    )
    def test_degenerate(self, transform):
        assert crop_rectangle(transform, 100, 100) is None


class TestCrop:
    def test_crop_in_place(self, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(png_bytes(100, 80))
        assert apply_crop_transform(path, HALF_CENTER) == {"width": 50, "height": 40}
        assert get_image_dimensions(path) == {"width": 50, "height": 40}
        assert [p.name for p in tmp_path.iterdir()] == ["photo.png"]

    def test_invalid_crop_keeps_original(self, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(png_bytes(100, 80))
        assert apply_crop_transform(path, [[0, 0, 0], [0, 0, 0]]) is None
        assert get_image_dimensions(path) == {"width": 100, "height": 80}


class TestDimensions:
    def test_svg_width_and_height(self, tmp_path):
        path = tmp_path / "icon.svg"
        path.write_text('<svg xmlns="http://www.w3.org/2000/svg" width="24px" height="16"></svg>')
        assert get_image_dimensions(path) == {"width": 24, "height": 16}

    def test_svg_view_box(self, tmp_path):
        path = tmp_path / "icon.svg"
        path.write_text('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 48 32"></svg>')
        assert get_image_dimensions(path) == {"width": 48, "height": 32}

    def test_unreadable_image(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ImageProcessingError):
            get_image_dimensions(path)

    def test_css_variables(self):
        assert generate_image_css_variables({"width": 640, "height": 480}) == (
            "--original-width: 640px; --original-height: 480px;"
        )


class TestDownloadAndProcess:
    def test_crop_and_annotate(self, tmp_path):
        with patch("image_processing.requests.get", return_value=mock_response(png_bytes(100, 80))):
            result = download_and_process_image(
                "photo.png",
                tmp_path,
                "https://cdn/photo",
                needs_cropping=True,
                crop_transform=HALF_CENTER,
                requires_image_dimensions=True,
            )

        assert result.was_cropped is True
        assert result.original_dimensions == {"width": 100, "height": 80}
        assert result.final_dimensions == {"width": 50, "height": 40}
        assert result.css_variables == "--original-width: 50px; --original-height: 40px;"
        assert result.requested_file_names == ["photo.png"]

    def test_plain_download_has_no_css(self, tmp_path):
        with patch("image_processing.requests.get", return_value=mock_response(png_bytes(10, 10))):
            result = download_and_process_image("photo.png", tmp_path, "https://cdn/photo")

        assert result.was_cropped is False
        assert result.final_dimensions == {"width": 10, "height": 10}
        assert "css_variables" not in result.to_dict()

    def test_invalid_crop_is_skipped(self, tmp_path):
        with patch("image_processing.requests.get", return_value=mock_response(png_bytes(10, 10))):
            result = download_and_process_image(
                "photo.png",
                tmp_path,
                "https://cdn/photo",
                needs_cropping=True,
                crop_transform=[[0, 0, 0], [0, 0, 0]],
            )

        assert result.crop_skipped is True
        assert result.was_cropped is False
        assert result.final_dimensions == {"width": 10, "height": 10}

    def test_origin_outside_image_keeps_original(self, tmp_path):
        with patch("image_processing.requests.get", return_value=mock_response(png_bytes(100, 100))):
            result = download_and_process_image(
                "photo.png",
                tmp_path,
                "https://cdn/photo",
                needs_cropping=True,
                crop_transform=[[0.5, 0, -0.5], [0, 1, 0]],
            )

        assert result.crop_skipped is True
        assert result.was_cropped is False
        assert get_image_dimensions(tmp_path / "photo.png") == {"width": 100, "height": 100}

    def test_svg_is_never_cropped(self, tmp_path):
        svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="20" height="20"></svg>'
        with patch("image_processing.requests.get", return_value=mock_response(svg)):
            result = download_and_process_image(
                "icon.svg", tmp_path, "https://cdn/icon", needs_cropping=True, crop_transform=HALF_CENTER
            )

        assert result.crop_skipped is True
        assert result.final_dimensions == {"width": 20, "height": 20}

    def test_unmeasurable_image_fails_only_when_dimensions_required(self, tmp_path):
        with patch("image_processing.requests.get", return_value=mock_response(b"garbage")):
            result = download_and_process_image("photo.png", tmp_path, "https://cdn/photo")
            assert result.original_dimensions is None

            with pytest.raises(ImageProcessingError):
                download_and_process_image(
                    "other.png", tmp_path, "https://cdn/photo", requires_image_dimensions=True
                )
