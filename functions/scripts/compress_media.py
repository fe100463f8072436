"""
Compress a local image or video with the same pipeline the API uses.

Images are downscaled and re-encoded with Pillow. Videos go through the
configured strategy chain (CloudConvert, then ffmpeg); when every strategy
fails the original is left untouched and the script exits non-zero.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.config import get_settings
from backend.dependencies import get_video_compressor
from media_pipeline.compression import CompressionError, format_file_size
from media_pipeline.image_compression import compress_image
from shared.mime import guess_mime_type, is_image_mime, is_video_mime

logger = logging.getLogger(__name__)


def default_output_path(input_path: Path, mime_type: str) -> Path:
    suffix = ".jpg" if is_image_mime(mime_type) else ".mp4"
    return input_path.with_name(f"{input_path.stem}.compressed{suffix}")


def compress_file(input_path: Path, output_path: Path) -> bool:
    settings = get_settings()
    mime_type = guess_mime_type(input_path.name)
    data = input_path.read_bytes()

    if is_image_mime(mime_type):
        try:
            result = compress_image(
                data,
                max_width=settings.image_max_width,
                max_height=settings.image_max_height,
                quality=settings.image_quality,
            )
        except CompressionError as e:
            logger.error("Could not compress %s: %s", input_path, e)
            return False
        compressed, ratio = result.data, result.ratio
    elif is_video_mime(mime_type):
        outcome = get_video_compressor().compress(data, input_path.name)
        if not outcome.success:
            for error in outcome.errors:
                logger.error("%s", error)
            return False
        compressed, ratio = outcome.data, outcome.ratio
    else:
        logger.error("Unsupported file type: %s", mime_type)
        return False

    output_path.write_bytes(compressed)
    logger.info(
        "Wrote %s: %s -> %s (%.1f%% smaller)",
        output_path,
        format_file_size(len(data)),
        format_file_size(len(compressed)),
        ratio,
    )
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Compress a local image or video")
    parser.add_argument("input", type=Path, help="File to compress")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination (defaults to <name>.compressed.<ext> beside the input)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    if not args.input.is_file():
        logger.error("No such file: %s", args.input)
        return 1

    output = args.output or default_output_path(args.input, guess_mime_type(args.input.name))
    return 0 if compress_file(args.input, output) else 1


if __name__ == "__main__":
    raise SystemExit(main())
