# image_downloads.py
"""
Resolve, deduplicate and download image fills and node renders.

URL lookups go through an injected ``fetch_json(path, params)`` callable, so
the pipeline has no opinion on authentication or transport.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from image_processing import DEFAULT_TIMEOUT, ImageProcessingResult, download_and_process_image
from transform import transform_hash

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
DEFAULT_PNG_SCALE = 2

FetchJson = Callable[[str, Optional[dict]], dict]


@dataclass
class SvgOptions:
    outline_text: bool = True
    include_id: bool = False
    simplify_stroke: bool = True

    def to_params(self) -> dict:
        return {
            "svg_outline_text": str(self.outline_text).lower(),
            "svg_include_id": str(self.include_id).lower(),
            "svg_simplify_stroke": str(self.simplify_stroke).lower(),
        }


@dataclass
class ImageDownloadItem:
    file_name: str
    image_ref: Optional[str] = None
    node_id: Optional[str] = None
    needs_cropping: bool = False
    crop_transform: Optional[list] = None
    requires_image_dimensions: bool = False
    filename_suffix: Optional[str] = None

    def __post_init__(self):
        if not self.file_name:
            raise ValueError("Image download item needs a file name")
        if not self.image_ref and not self.node_id:
            raise ValueError(f"Image download item {self.file_name!r} needs an imageRef or a nodeId")
        if self.needs_cropping and self.crop_transform and not self.filename_suffix:
            self.filename_suffix = transform_hash(self.crop_transform)

    @classmethod
    def from_dict(cls, data: dict) -> "ImageDownloadItem":
        return cls(
            file_name=data.get("fileName") or data.get("file_name"),
            image_ref=data.get("imageRef") or data.get("image_ref"),
            node_id=data.get("nodeId") or data.get("node_id"),
            needs_cropping=bool(data.get("needsCropping", data.get("needs_cropping", False))),
            crop_transform=data.get("cropTransform") or data.get("crop_transform"),
            requires_image_dimensions=bool(
                data.get("requiresImageDimensions", data.get("requires_image_dimensions", False))
            ),
            filename_suffix=data.get("filenameSuffix") or data.get("filename_suffix"),
        )

    @property
    def is_fill(self) -> bool:
        return bool(self.image_ref)

    @property
    def render_format(self) -> str:
        return "svg" if self.file_name.lower().endswith(".svg") else "png"

    @property
    def output_file_name(self) -> str:
        if not self.filename_suffix:
            return self.file_name
        base, ext = os.path.splitext(self.file_name)
        suffix = f"-{self.filename_suffix}"
        if base.endswith(suffix):
            return self.file_name
        return f"{base}{suffix}{ext}"


@dataclass
class PlannedDownload:
    url: str
    item: ImageDownloadItem
    file_name: str
    aliases: List[str] = field(default_factory=list)
    requires_image_dimensions: bool = False


def partition_items(items: Sequence[ImageDownloadItem]) -> tuple:
    """Split items into image fills, PNG renders and SVG renders."""
    fills = [item for item in items if item.is_fill]
    renders = [item for item in items if not item.is_fill]
    png = [item for item in renders if item.render_format == "png"]
    svg = [item for item in renders if item.render_format == "svg"]
    return fills, png, svg


def _valid_urls(images) -> Dict[str, str]:
    return {key: url for key, url in (images or {}).items() if url}


def get_image_fill_urls(file_key: str, fetch_json: FetchJson) -> Dict[str, str]:
    response = fetch_json(f"/files/{file_key}/images", None)
    return _valid_urls((response.get("meta") or {}).get("images"))


def get_node_render_urls(
    file_key: str,
    node_ids: Sequence[str],
    image_format: str,
    fetch_json: FetchJson,
    png_scale: float = DEFAULT_PNG_SCALE,
    svg_options: Optional[SvgOptions] = None,
) -> Dict[str, str]:
    if not node_ids:
        return {}

    params = {"ids": ",".join(dict.fromkeys(node_ids)), "format": image_format}
    if image_format == "png":
        params["scale"] = png_scale
    else:
        params.update((svg_options or SvgOptions()).to_params())

    response = fetch_json(f"/images/{file_key}", params)
    if response.get("err"):
        logger.warning(f"Figma reported an error rendering {image_format} nodes: {response['err']}")
    return _valid_urls(response.get("images"))


def plan_downloads(
    items: Sequence[ImageDownloadItem],
    fill_urls: Dict[str, str],
    png_urls: Dict[str, str],
    svg_urls: Dict[str, str],
) -> List[PlannedDownload]:
    """
    Map items to physical downloads, in first-request order.

    Uncropped fills sharing an ``imageRef`` collapse into one download with
    every requested file name kept as an alias. Cropped fills and node
    renders get a download of their own unless an earlier item already
    writes the same output file, so each path has a single writer.
    """
    planned: List[PlannedDownload] = []
    shared: Dict[str, PlannedDownload] = {}
    by_name: Dict[str, PlannedDownload] = {}

    for item in items:
        if item.is_fill:
            url = fill_urls.get(item.image_ref)
        elif item.render_format == "svg":
            url = svg_urls.get(item.node_id)
        else:
            url = png_urls.get(item.node_id)

        if not url:
            logger.warning(f"No download URL for {item.image_ref or item.node_id} ({item.file_name})")
            continue

        file_name = item.output_file_name
        existing = None
        if item.is_fill and not item.filename_suffix:
            existing = shared.get(item.image_ref)
        if existing is None:
            existing = by_name.get(file_name)
            if existing is not None and existing.url != url:
                logger.warning(f"{file_name} requested for different sources, keeping the first")

        if existing is not None:
            if file_name not in existing.aliases:
                existing.aliases.append(file_name)
            existing.requires_image_dimensions |= item.requires_image_dimensions
            continue

        download = PlannedDownload(url, item, file_name, [file_name], item.requires_image_dimensions)
        if item.is_fill and not item.filename_suffix:
            shared[item.image_ref] = download
        by_name[file_name] = download
        planned.append(download)

    return planned


def _resolve_urls(file_key, fills, png, svg, fetch_json, png_scale, svg_options) -> tuple:
    lookups = {}
    with ThreadPoolExecutor(max_workers=3) as executor:
        if fills:
            lookups["fill"] = executor.submit(get_image_fill_urls, file_key, fetch_json)
        if png:
            lookups["png"] = executor.submit(
                get_node_render_urls, file_key, [i.node_id for i in png], "png", fetch_json, png_scale=png_scale
            )
        if svg:
            lookups["svg"] = executor.submit(
                get_node_render_urls, file_key, [i.node_id for i in svg], "svg", fetch_json, svg_options=svg_options
            )

        urls = {}
        for kind, future in lookups.items():
            try:
                urls[kind] = future.result()
            except Exception as e:
                logger.error(f"Failed to resolve {kind} image URLs for file {file_key}: {e}")
                urls[kind] = {}

    return urls.get("fill", {}), urls.get("png", {}), urls.get("svg", {})


def _run_download(download: PlannedDownload, local_path, timeout: float) -> ImageProcessingResult:
    item = download.item
    result = download_and_process_image(
        download.file_name,
        local_path,
        download.url,
        needs_cropping=item.needs_cropping,
        crop_transform=item.crop_transform,
        requires_image_dimensions=download.requires_image_dimensions,
        timeout=timeout,
    )
    result.requested_file_names = list(download.aliases)
    return result


def download_images(
    file_key: str,
    local_path,
    items: Sequence,
    fetch_json: FetchJson,
    png_scale: float = DEFAULT_PNG_SCALE,
    svg_options: Optional[SvgOptions] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[ImageProcessingResult]:
    """
    Download every requested image fill and node render into ``local_path``.

    Failures are per item: a failed download is logged and left out of the
    result, so callers detect it by comparing counts.
    """
    if png_scale is None or png_scale <= 0:
        raise ValueError(f"png_scale must be positive, got {png_scale}")

    items = [i if isinstance(i, ImageDownloadItem) else ImageDownloadItem.from_dict(i) for i in items]
    if not items:
        return []

    fills, png, svg = partition_items(items)
    fill_urls, png_urls, svg_urls = _resolve_urls(file_key, fills, png, svg, fetch_json, png_scale, svg_options)
    planned = plan_downloads(items, fill_urls, png_urls, svg_urls)
    if not planned:
        return []

    results: List[Optional[ImageProcessingResult]] = [None] * len(planned)
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(planned)))) as executor:
        futures = {
            executor.submit(_run_download, download, local_path, timeout): index
            for index, download in enumerate(planned)
        }
        for future in as_completed(futures):
            download = planned[futures[future]]
            try:
                results[futures[future]] = future.result()
            except Exception as e:
                logger.error(f"Failed to download {download.file_name} for file {file_key}: {e}")

    completed = [r for r in results if r is not None]
    logger.info(f"Downloaded {len(completed)}/{len(planned)} images for file {file_key}")
    return completed


def result_paths(results: Sequence[ImageProcessingResult]) -> List[str]:
    return [r.file_path for r in results]
