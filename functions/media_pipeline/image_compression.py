# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from __future__ import annotations

import io
import logging

from PIL import Image, UnidentifiedImageError

from media_pipeline.compression import (
    CompressionError,
    CompressionResult,
    compression_ratio,
    format_file_size,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_WIDTH = 1920
DEFAULT_MAX_HEIGHT = 1080
DEFAULT_QUALITY = 0.8
DEFAULT_OUTPUT_MIME_TYPE = "image/jpeg"

PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}

# JPEG has no alpha channel; transparent pixels are flattened onto this colour.
JPEG_BACKGROUND = (255, 255, 255)


def _flatten_transparency(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, JPEG_BACKGROUND)
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def compress_image(
    data: bytes,
    max_width: int = DEFAULT_MAX_WIDTH,
    max_height: int = DEFAULT_MAX_HEIGHT,
    quality: float = DEFAULT_QUALITY,
    mime_type: str = DEFAULT_OUTPUT_MIME_TYPE,
) -> CompressionResult:
    """
    Downscales and re-encodes an image.

    The image keeps its aspect ratio, is never upscaled, and is written in
    `mime_type` at the given quality.

    Args:
        data (bytes): The original encoded image.
        max_width (int): Maximum output width in pixels.
        max_height (int): Maximum output height in pixels.
        quality (float): Encoder quality between 0 and 1.
        mime_type (str): Output type; one of `PIL_FORMATS`.

    Returns:
        CompressionResult: The re-encoded bytes with size statistics.

    Raises:
        CompressionError: If the input cannot be decoded (including images
            over Pillow's decompression-bomb limit) or the output type is
            unsupported.
        ValueError: If `quality` is outside (0, 1].
    """
    if not 0 < quality <= 1:
        raise ValueError(f"quality must be in (0, 1], got {quality}")
    pil_format = PIL_FORMATS.get(mime_type)
    if pil_format is None:
        raise CompressionError(f"Unsupported output type: {mime_type}")

    original_size = len(data)
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            logger.info(
                "Compressing image: %dx%d %s, %s",
                img.width,
                img.height,
                img.format,
                format_file_size(original_size),
            )
            img.thumbnail((max_width, max_height))
            if pil_format == "JPEG":
                img = _flatten_transparency(img)

            output = io.BytesIO()
            img.save(
                output,
                format=pil_format,
                quality=int(round(quality * 100)),
                optimize=True,
            )
    except Image.DecompressionBombError as e:
        raise CompressionError(f"Image too large to decode: {e}") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise CompressionError(f"Could not decode image: {e}") from e

    compressed = output.getvalue()
    ratio = compression_ratio(original_size, len(compressed))
    logger.info(
        "Image compressed: %s -> %s (%.1f%%)",
        format_file_size(original_size),
        format_file_size(len(compressed)),
        ratio,
    )
    return CompressionResult(
        data=compressed,
        mime_type=mime_type,
        original_size=original_size,
        compressed_size=len(compressed),
        ratio=ratio,
    )
