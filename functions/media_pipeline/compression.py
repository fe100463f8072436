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
Shared result types and size helpers for the media compression pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

BYTES_PER_MB = 1024 * 1024
DEFAULT_MAX_UPLOAD_MB = 10
DEFAULT_COMPRESS_THRESHOLD_MB = 5

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


class CompressionError(Exception):
    """Raised by a compression step that could not produce output."""


@dataclass
class CompressionResult:
    data: bytes
    mime_type: str
    original_size: int
    compressed_size: int
    ratio: float


@dataclass
class CompressionOutcome:
    """
    Result of running the compression chain.

    `compressed` means one strategy produced output; `passthrough` means the
    original bytes are returned unchanged and `errors` says why.
    """

    kind: Literal["compressed", "passthrough"]
    data: bytes
    original_size: int
    compressed_size: int
    ratio: float
    strategy: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.kind == "compressed"

    @classmethod
    def passthrough(cls, data: bytes, errors: list[str] | None = None) -> "CompressionOutcome":
        return cls(
            kind="passthrough",
            data=data,
            original_size=len(data),
            compressed_size=len(data),
            ratio=0.0,
            errors=list(errors or []),
        )

    @classmethod
    def from_result(cls, result: CompressionResult, strategy: str, errors: list[str] | None = None) -> "CompressionOutcome":
        return cls(
            kind="compressed",
            data=result.data,
            original_size=result.original_size,
            compressed_size=result.compressed_size,
            ratio=result.ratio,
            strategy=strategy,
            errors=list(errors or []),
        )


def compression_ratio(original_size: int, compressed_size: int) -> float:
    """Percentage of bytes saved, rounded to one decimal place."""
    if original_size <= 0:
        return 0.0
    return round((1 - compressed_size / original_size) * 100, 1)


def format_file_size(num_bytes: int) -> str:
    """Formats a byte count for humans, e.g. `1.5 KB`."""
    if num_bytes <= 0:
        return "0 Bytes"
    index = 0
    value = float(num_bytes)
    while value >= 1024 and index < len(_SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[index]}"


def is_file_too_large(size: int, max_size_mb: float = DEFAULT_MAX_UPLOAD_MB) -> bool:
    return size > max_size_mb * BYTES_PER_MB


def should_compress(size: int, threshold_mb: float = DEFAULT_COMPRESS_THRESHOLD_MB) -> bool:
    return size > threshold_mb * BYTES_PER_MB
