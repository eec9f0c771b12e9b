import os
import json
import logging
from pathlib import Path
from typing import List, Optional

import requests
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from mcp_server import mcp
from design_extractor import simplify_raw_figma_object
from extractors import ALL_EXTRACTORS
from image_downloads import ImageDownloadItem, SvgOptions, download_images

load_dotenv()
logger = logging.getLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


FIGMA_API_BASE = "https://api.figma.com/v1"
FIGMA_API_KEY = os.getenv("FIGMA_API_KEY")
FIGMA_OAUTH_TOKEN = os.getenv("FIGMA_OAUTH_TOKEN")
OUTPUT_FORMAT = os.getenv("OUTPUT_FORMAT", "yaml").strip().lower()
SKIP_IMAGE_DOWNLOADS = _env_flag("SKIP_IMAGE_DOWNLOADS")
FIGMA_DEBUG_LOGS = _env_flag("FIGMA_DEBUG_LOGS")
IMAGE_DOWNLOAD_WORKERS = int(os.getenv("IMAGE_DOWNLOAD_WORKERS", "8"))
FIGMA_REQUEST_TIMEOUT = float(os.getenv("FIGMA_REQUEST_TIMEOUT", "30"))
LOGS_DIR = Path("logs")


class FigmaApiError(Exception):
    def __init__(self, endpoint: str, cause):
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(f"Failed to make request to Figma API endpoint '{endpoint}': {cause}")


def auth_headers() -> dict:
    if FIGMA_OAUTH_TOKEN:
        return {"Authorization": f"Bearer {FIGMA_OAUTH_TOKEN}"}
    if FIGMA_API_KEY:
        return {"X-Figma-Token": FIGMA_API_KEY}
    raise FigmaApiError("auth", "Missing FIGMA_API_KEY or FIGMA_OAUTH_TOKEN in .env")


def figma_api_get(path, params=None):
    url = f"{FIGMA_API_BASE}{path}"
    logger.info(f"Calling {url}")
    headers = auth_headers()
    try:
        res = requests.get(url, headers=headers, params=params, timeout=FIGMA_REQUEST_TIMEOUT)
        res.raise_for_status()
        return res.json()
    except (requests.RequestException, ValueError) as e:
        raise FigmaApiError(path, e) from e


def normalize_node_id(node_id: str) -> str:
    return node_id.replace("-", ":")


def write_logs(name: str, value) -> None:
    """Dump a payload to logs/<name> when FIGMA_DEBUG_LOGS is set."""
    if not FIGMA_DEBUG_LOGS:
        return
    try:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        log_path = LOGS_DIR / name
        log_path.write_text(json.dumps(value, indent=2), encoding="utf-8")
        logger.debug(f"Debug log written to: {log_path}")
    except OSError as e:
        logger.warning(f"Failed to write logs to {name}: {e}")


def get_raw_file(fileKey: str, depth: int = None) -> dict:
    params = {"depth": depth} if depth else None
    logger.info(f"Retrieving raw Figma file: {fileKey} (depth: {depth or 'default'})")
    raw = figma_api_get(f"/files/{fileKey}", params=params)
    write_logs("figma-raw.json", raw)
    return raw


def get_raw_node(fileKey: str, nodeId: str, depth: int = None) -> dict:
    params = {"ids": normalize_node_id(nodeId)}
    if depth:
        params["depth"] = depth
    logger.info(f"Retrieving raw Figma node: {nodeId} from {fileKey} (depth: {depth or 'default'})")
    raw = figma_api_get(f"/files/{fileKey}/nodes", params=params)
    write_logs("figma-raw.json", raw)
    return raw


def get_simplified_design(fileKey: str, nodeId: str = None, depth: int = None) -> dict:
    # The API already truncates the tree at `depth`; the walk limit only keeps
    # the output within the same bound. Whole-file roots are pages (API depth 1).
    if nodeId:
        raw = get_raw_node(fileKey, nodeId, depth)
        max_depth = depth
    else:
        raw = get_raw_file(fileKey, depth)
        max_depth = depth - 1 if depth else None

    design = simplify_raw_figma_object(raw, ALL_EXTRACTORS, max_depth=max_depth)
    write_logs("figma-simplified.json", design)
    logger.info(
        f"Successfully extracted data: {len(design['nodes'])} nodes, "
        f"{len(design['globalVars']['styles'])} styles"
    )
    return design


def dump(data, output_format: str = "yaml") -> str:
    if output_format == "json":
        return json.dumps(data, indent=2, ensure_ascii=False)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def format_design(design: dict, output_format: str = "yaml") -> str:
    metadata = {k: v for k, v in design.items() if k not in ("nodes", "globalVars")}
    result = {"metadata": metadata, "nodes": design["nodes"], "globalVars": design["globalVars"]}
    return dump(result, output_format)


def calc_string_size(text: str) -> float:
    """Size of the UTF-8 encoded text in kilobytes."""
    return round(len(text.encode("utf-8")) / 1024, 2)


def design_size_report(design: dict) -> list:
    metadata = {k: v for k, v in design.items() if k not in ("nodes", "globalVars")}
    report = []
    for node in design["nodes"]:
        # globalVars is shared by all nodes, so each size is an upper bound.
        rendered = dump({"metadata": metadata, "nodes": [node], "globalVars": design["globalVars"]})
        report.append({"nodeId": node["id"], "size": f"{calc_string_size(rendered)} KB"})
    return report


def _describe_target(fileKey: str, nodeId: str = None) -> str:
    return f"node {nodeId} of file {fileKey}" if nodeId else f"file {fileKey}"


@mcp.tool(
    name="get_figma_data",
    description="""
    Fetches a Figma file or node and simplifies it into a compact layout/style tree.

    Styles are deduplicated into `globalVars` and referenced by id from each node.
    Use this tool when you want structured layout, text and styling data of a UI for code generation.
    """
)
def get_figma_data(fileKey: str, nodeId: str = None, depth: int = None):
    try:
        logger.info(f"Fetching {f'{depth} layers deep' if depth else 'all layers'} of {_describe_target(fileKey, nodeId)}")
        design = get_simplified_design(fileKey, nodeId, depth)
        return format_design(design, OUTPUT_FORMAT)
    except Exception as e:
        logger.error(f"Error fetching {_describe_target(fileKey, nodeId)}: {e}")
        return {"error": f"Failed to process Figma data for {_describe_target(fileKey, nodeId)}: {e}"}


@mcp.tool(
    name="get_figma_data_size",
    description="""
    Reports the size in KB of the simplified data for each top-level node of a Figma file or node.

    Use it to decide which nodes are small enough to fetch with `get_figma_data`.
    """
)
def get_figma_data_size(fileKey: str, nodeId: str = None, depth: int = None):
    try:
        design = get_simplified_design(fileKey, nodeId, depth)
        return dump(design_size_report(design))
    except Exception as e:
        logger.error(f"Error getting size of {_describe_target(fileKey, nodeId)}: {e}")
        return {"error": f"Failed to get size of {_describe_target(fileKey, nodeId)}: {e}"}


class ImageNode(BaseModel):
    nodeId: str = Field(description="The ID of the Figma image node to fetch, formatted as 1234:5678")
    imageRef: Optional[str] = Field(
        default=None,
        description="If a node has an imageRef fill, you must include this variable. "
                    "Leave blank when downloading Vector SVG images.",
    )
    fileName: str = Field(description="The local name for saving the fetched file")
    needsCropping: bool = Field(default=False, description="Copy from imageDownloadArguments of the fill")
    cropTransform: Optional[List[List[float]]] = Field(
        default=None, description="Copy from imageDownloadArguments of the fill"
    )
    requiresImageDimensions: bool = Field(default=False, description="Copy from imageDownloadArguments of the fill")
    filenameSuffix: Optional[str] = Field(default=None, description="Copy from imageDownloadArguments of the fill")


class SvgExportOptions(BaseModel):
    outlineText: bool = Field(default=True, description="Whether to outline text in SVG exports")
    includeId: bool = Field(default=False, description="Whether to include IDs in SVG exports")
    simplifyStroke: bool = Field(default=True, description="Whether to simplify strokes in SVG exports")


def to_download_items(nodes) -> List[ImageDownloadItem]:
    items = []
    for node in nodes:
        if isinstance(node, BaseModel):
            node = node.model_dump()
        if node.get("imageRef"):
            items.append(ImageDownloadItem(
                file_name=node["fileName"],
                image_ref=node["imageRef"],
                needs_cropping=bool(node.get("needsCropping")),
                crop_transform=node.get("cropTransform"),
                requires_image_dimensions=bool(node.get("requiresImageDimensions")),
                filename_suffix=node.get("filenameSuffix"),
            ))
        else:
            items.append(ImageDownloadItem(
                file_name=node["fileName"],
                node_id=normalize_node_id(node["nodeId"]),
                needs_cropping=bool(node.get("needsCropping")),
                crop_transform=node.get("cropTransform"),
                requires_image_dimensions=bool(node.get("requiresImageDimensions")),
                filename_suffix=node.get("filenameSuffix"),
            ))
    return items


def summarize_downloads(results, requested: int) -> str:
    delivered = sum(len(r.requested_file_names) for r in results)
    if delivered == requested:
        header = f"Successfully downloaded {len(results)} images"
    else:
        header = f"Downloaded {len(results)} images for {delivered}/{requested} requests (some failed)"

    lines = [header + ":"]
    for r in results:
        line = f"- {r.file_path}"
        if r.final_dimensions:
            line += f": {r.final_dimensions['width']}x{r.final_dimensions['height']}"
        if r.css_variables:
            line += f" | {r.css_variables}"
        if r.was_cropped:
            line += " (cropped)"
        elif r.crop_skipped:
            line += " (crop skipped, original kept)"
        aliases = r.requested_file_names[1:]
        if aliases:
            line += f" (also requested as: {', '.join(aliases)})"
        lines.append(line)
    return "\n".join(lines)


def download_figma_images(
    fileKey: str,
    nodes: List[ImageNode],
    localPath: str,
    pngScale: float = 2,
    svgOptions: Optional[SvgExportOptions] = None,
):
    try:
        items = to_download_items(nodes)
        svg = svgOptions or SvgExportOptions()
        results = download_images(
            fileKey,
            localPath,
            items,
            figma_api_get,
            png_scale=pngScale,
            svg_options=SvgOptions(svg.outlineText, svg.includeId, svg.simplifyStroke),
            max_workers=IMAGE_DOWNLOAD_WORKERS,
            timeout=FIGMA_REQUEST_TIMEOUT,
        )
        return summarize_downloads(results, len(items))
    except Exception as e:
        logger.error(f"Error downloading images from {fileKey}: {e}")
        return {"error": f"Failed to download images from file {fileKey}: {e}"}


if not SKIP_IMAGE_DOWNLOADS:
    mcp.tool(
        name="download_figma_images",
        description="""
        Downloads SVG and PNG images used in a Figma file based on the IDs of image or icon nodes.

        Image fills sharing an imageRef are downloaded once. Pass the imageDownloadArguments
        of a fill through to get cropped images and dimension hints.
        """
    )(download_figma_images)
