# image_processing.py
"""Download a single exported asset and post-process it (crop, measure)."""

import logging
import os
import re
import tempfile
import xml.etree.ElementTree as ET
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional

import requests
from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
_CHUNK_SIZE = 64 * 1024
_SVG_LENGTH = re.compile(r"^\s*([0-9]*\.?[0-9]+)")


class ImageProcessingError(Exception):
    """Raised when an asset cannot be downloaded or read."""


@dataclass
class ImageProcessingResult:
    file_path: str
    original_dimensions: Optional[dict]
    final_dimensions: Optional[dict]
    was_cropped: bool = False
    css_variables: Optional[str] = None
    requested_file_names: List[str] = field(default_factory=list)
    crop_skipped: bool = False

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def _write_atomically(directory: Path, final_name: str, chunks) -> Path:
    """Write chunks to a temp file beside the target, then rename into place."""
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{final_name}.", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            for chunk in chunks:
                if chunk:
                    f.write(chunk)
        final_path = directory / final_name
        os.replace(tmp_path, final_path)
        return final_path
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


def download_figma_image(file_name: str, local_path, image_url: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Download ``image_url`` into ``local_path/file_name`` and return the full path."""
    directory = Path(local_path)
    directory.mkdir(parents=True, exist_ok=True)

    try:
        with requests.get(image_url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            path = _write_atomically(directory, file_name, response.iter_content(_CHUNK_SIZE))
    except (requests.RequestException, OSError) as e:
        raise ImageProcessingError(f"Error downloading image {file_name}: {e}") from e

    return str(path)


def is_svg(path) -> bool:
    return str(path).lower().endswith(".svg")


def _svg_length(value) -> Optional[float]:
    if not value:
        return None
    match = _SVG_LENGTH.match(value)
    return float(match.group(1)) if match else None


def _svg_dimensions(image_path) -> dict:
    root = ET.parse(image_path).getroot()
    width = _svg_length(root.get("width"))
    height = _svg_length(root.get("height"))
    if (width is None or height is None) and root.get("viewBox"):
        parts = re.split(r"[\s,]+", root.get("viewBox").strip())
        if len(parts) == 4:
            width = width if width is not None else float(parts[2])
            height = height if height is not None else float(parts[3])
    if width is None or height is None:
        raise ImageProcessingError(f"Cannot determine SVG size of {image_path}")
    return {"width": round(width), "height": round(height)}


def get_image_dimensions(image_path) -> dict:
    try:
        if is_svg(image_path):
            return _svg_dimensions(image_path)
        with Image.open(image_path) as img:
            width, height = img.size
        return {"width": width, "height": height}
    except (OSError, ET.ParseError) as e:
        raise ImageProcessingError(f"Cannot read image {image_path}: {e}") from e


def crop_rectangle(crop_transform, width: int, height: int) -> Optional[tuple]:
    """
    Pixel rectangle ``(left, top, right, bottom)`` selected by a Figma image transform.

    The transform is ``[[scaleX, skewX, translateX], [skewY, scaleY, translateY]]``
    in normalized image coordinates. Returns None for degenerate rectangles and
    for an origin outside the image.
    """
    try:
        scale_x = crop_transform[0][0]
        translate_x = crop_transform[0][2]
        scale_y = crop_transform[1][1]
        translate_y = crop_transform[1][2]
    except (TypeError, IndexError, KeyError):
        return None

    if translate_x < 0 or translate_y < 0:
        return None
    left = round(translate_x * width)
    top = round(translate_y * height)
    if left >= width or top >= height:
        return None
    crop_width = min(width - left, round(scale_x * width))
    crop_height = min(height - top, round(scale_y * height))
    if crop_width <= 0 or crop_height <= 0:
        return None
    return left, top, left + crop_width, top + crop_height


def apply_crop_transform(image_path, crop_transform) -> Optional[dict]:
    """
    Crop the image in place. Returns the new dimensions, or None when the
    transform selects no usable region and the original is kept.
    """
    path = Path(image_path)
    with Image.open(path) as img:
        box = crop_rectangle(crop_transform, img.width, img.height)
        if box is None:
            logger.warning(f"Invalid crop {crop_transform} for {path.name} ({img.width}x{img.height}), keeping original")
            return None
        cropped = img.crop(box)
        cropped.load()
        image_format = img.format

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".part")
    os.close(fd)
    try:
        cropped.save(tmp_path, format=image_format or "PNG")
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.info(f"Cropped {path.name} to {cropped.width}x{cropped.height}")
    return {"width": cropped.width, "height": cropped.height}


def generate_image_css_variables(dimensions: dict) -> str:
    return f"--original-width: {dimensions['width']}px; --original-height: {dimensions['height']}px;"


def download_and_process_image(
    file_name: str,
    local_path,
    image_url: str,
    needs_cropping: bool = False,
    crop_transform=None,
    requires_image_dimensions: bool = False,
    timeout: float = DEFAULT_TIMEOUT,
) -> ImageProcessingResult:
    path = download_figma_image(file_name, local_path, image_url, timeout=timeout)

    try:
        original = get_image_dimensions(path)
    except ImageProcessingError:
        if requires_image_dimensions:
            raise
        logger.debug(f"Could not measure {file_name}", exc_info=True)
        original = None

    final = original
    was_cropped = False
    crop_skipped = False
    if needs_cropping and crop_transform:
        if is_svg(path):
            logger.warning(f"Skipping crop of vector asset {file_name}")
            crop_skipped = True
        else:
            try:
                cropped = apply_crop_transform(path, crop_transform)
            except OSError as e:
                raise ImageProcessingError(f"Failed to crop {file_name}: {e}") from e
            if cropped is None:
                crop_skipped = True
            else:
                final, was_cropped = cropped, True

    css_variables = generate_image_css_variables(final) if requires_image_dimensions and final else None

    return ImageProcessingResult(
        file_path=path,
        original_dimensions=original,
        final_dimensions=final,
        was_cropped=was_cropped,
        css_variables=css_variables,
        requested_file_names=[file_name],
        crop_skipped=crop_skipped,
    )
