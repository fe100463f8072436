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

"""MIME inference and Base64 / data URL helpers for uploaded media."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Optional

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
}

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<data>.*)$", re.DOTALL)


def guess_mime_type(file_name: str) -> str:
    """Returns the MIME type for a file name based on its last extension."""
    if not file_name or "." not in file_name:
        return DEFAULT_MIME_TYPE
    extension = file_name.lower().rsplit(".", 1)[-1]
    return MIME_TYPES.get(extension, DEFAULT_MIME_TYPE)


def is_video_mime(mime_type: str) -> bool:
    return (mime_type or "").startswith("video/")


def is_image_mime(mime_type: str) -> bool:
    return (mime_type or "").startswith("image/")


def to_data_url(mime_type: str, b64_data: str) -> str:
    return f"data:{mime_type};base64,{b64_data}"


def parse_data_url(value: str) -> Optional[tuple[str, str]]:
    """Splits a `data:<mime>;base64,<data>` URL into (mime, data)."""
    match = DATA_URL_PATTERN.match(value or "")
    if not match:
        return None
    return match.group("mime"), match.group("data")


def decode_base64_payload(value: str) -> bytes:
    """
    Decodes a Base64 upload payload.

    Accepts raw Base64 (what the browser client sends after stripping the
    data URL prefix) as well as a full data URL.

    Raises:
        ValueError: If the payload is empty or not valid Base64.
    """
    if not value:
        raise ValueError("Empty file data")
    parsed = parse_data_url(value)
    b64_data = parsed[1] if parsed else value
    b64_data = re.sub(r"\s+", "", b64_data)
    try:
        return base64.b64decode(b64_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid Base64 file data: {e}") from e


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
