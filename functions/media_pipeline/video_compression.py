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

"""
Video compression as an ordered chain of strategies.

Each strategy either returns a `CompressionResult` or raises
`CompressionError`. `VideoCompressor` tries them in order and falls back to
returning the original bytes when none succeeds.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

import requests

from media_pipeline import cloudconvert
from media_pipeline.compression import (
    CompressionError,
    CompressionOutcome,
    CompressionResult,
    compression_ratio,
    format_file_size,
)

logger = logging.getLogger(__name__)

VIDEO_OUTPUT_MIME_TYPE = "video/mp4"
DEFAULT_VIDEO_QUALITY = 0.8
FFMPEG_TIMEOUT = 600  # seconds


class VideoCompressionStrategy(Protocol):
    """One way of shrinking a video."""

    name: str

    def compress(self, data: bytes, file_name: str) -> CompressionResult:
        ...


def _result(original: bytes, compressed: bytes) -> CompressionResult:
    return CompressionResult(
        data=compressed,
        mime_type=VIDEO_OUTPUT_MIME_TYPE,
        original_size=len(original),
        compressed_size=len(compressed),
        ratio=compression_ratio(len(original), len(compressed)),
    )


@dataclass
class CloudConvertStrategy:
    """Re-encodes through the hosted CloudConvert API."""

    api_key: str
    session: requests.Session | None = None
    name: str = "cloudconvert"

    def compress(self, data: bytes, file_name: str) -> CompressionResult:
        if not self.api_key:
            raise CompressionError("CloudConvert API key not configured")
        try:
            url = cloudconvert.convert_video(
                self.api_key, data, file_name, session=self.session
            )
            compressed = cloudconvert.download_output(url, session=self.session)
        except cloudconvert.CloudConvertError as e:
            raise CompressionError(str(e)) from e
        return _result(data, compressed)


@dataclass
class FfmpegStrategy:
    """Re-encodes with a local ffmpeg binary (H.264 + AAC)."""

    binary: str = "ffmpeg"
    quality: float = DEFAULT_VIDEO_QUALITY
    timeout: int = FFMPEG_TIMEOUT
    name: str = "ffmpeg"

    @property
    def video_bitrate(self) -> str:
        # quality 0.8 -> 800k, 1.0 -> 1000k
        return f"{round(1000 * self.quality)}k"

    def build_command(self, input_path: str, output_path: str) -> list[str]:
        return [
            self.binary,
            "-y",
            "-i",
            input_path,
            "-c:v",
            "libx264",
            "-preset",
            "fast",
            "-b:v",
            self.video_bitrate,
            "-c:a",
            "aac",
            "-b:a",
            "96k",
            output_path,
        ]

    def compress(self, data: bytes, file_name: str) -> CompressionResult:
        if shutil.which(self.binary) is None:
            raise CompressionError(f"ffmpeg binary not found: {self.binary}")

        suffix = Path(file_name).suffix or ".bin"
        try:
            with tempfile.TemporaryDirectory() as work_dir:
                input_path = os.path.join(work_dir, f"input{suffix}")
                output_path = os.path.join(work_dir, "compressed.mp4")
                with open(input_path, "wb") as f:
                    f.write(data)

                subprocess.run(
                    self.build_command(input_path, output_path),
                    check=True,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )

                with open(output_path, "rb") as f:
                    compressed = f.read()
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip().splitlines()
            raise CompressionError(
                f"ffmpeg exited with {e.returncode}: {stderr[-1] if stderr else ''}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise CompressionError(f"ffmpeg timed out after {self.timeout}s") from e
        except OSError as e:
            raise CompressionError(f"ffmpeg could not run: {e}") from e
        return _result(data, compressed)


class VideoCompressor:
    """Runs strategies in order until one succeeds."""

    def __init__(self, strategies: Sequence[VideoCompressionStrategy] = ()):
        self.strategies = list(strategies)

    @property
    def available(self) -> bool:
        return bool(self.strategies)

    def compress(self, data: bytes, file_name: str) -> CompressionOutcome:
        logger.info(
            "Starting video compression: %s, %s",
            file_name,
            format_file_size(len(data)),
        )
        if not self.strategies:
            logger.warning("No video compression strategy configured, returning original")
            return CompressionOutcome.passthrough(
                data, errors=["Video compression not available"]
            )

        errors: list[str] = []
        for strategy in self.strategies:
            try:
                result = strategy.compress(data, file_name)
            except CompressionError as e:
                logger.warning("Video compression via %s failed: %s", strategy.name, e)
                errors.append(f"{strategy.name}: {e}")
                continue
            except Exception as e:
                logger.exception("Video compression via %s crashed", strategy.name)
                errors.append(f"{strategy.name}: unexpected error: {e}")
                continue

            logger.info(
                "Video compressed via %s: %s -> %s (%.1f%%)",
                strategy.name,
                format_file_size(result.original_size),
                format_file_size(result.compressed_size),
                result.ratio,
            )
            return CompressionOutcome.from_result(result, strategy.name, errors)

        return CompressionOutcome.passthrough(data, errors=errors)
