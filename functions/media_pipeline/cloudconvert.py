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

import logging

import requests

logger = logging.getLogger(__name__)

CLOUDCONVERT_CONVERT_URL = "https://api.cloudconvert.com/v2/convert"
CONVERT_TIMEOUT = 300  # seconds
DOWNLOAD_TIMEOUT = 60  # seconds

DEFAULT_CONVERT_OPTIONS = {
    "output_format": "mp4",
    "video_codec": "h264",
    "crf": "28",
    "preset": "fast",
}


class CloudConvertError(Exception):
    pass


def convert_video(
    api_key: str,
    data: bytes,
    file_name: str,
    options: dict | None = None,
    session: requests.Session | None = None,
) -> str:
    """
    Submits a video to the CloudConvert API for re-encoding.

    Args:
        api_key (str): CloudConvert bearer token.
        data (bytes): The original video bytes.
        file_name (str): The original file name, forwarded with the upload.
        options (dict): Form fields overriding `DEFAULT_CONVERT_OPTIONS`.
        session (requests.Session): Optional session, mainly for tests.

    Returns:
        str: The download URL of the converted file.

    Raises:
        CloudConvertError: If the API rejects the request or the conversion
            did not complete.
    """
    http = session or requests
    form = dict(DEFAULT_CONVERT_OPTIONS)
    form.update(options or {})

    try:
        response = http.post(
            CLOUDCONVERT_CONVERT_URL,
            headers={"Authorization": f"Bearer {api_key}"},
            files={"file": (file_name, data)},
            data=form,
            timeout=CONVERT_TIMEOUT,
        )
    except requests.RequestException as e:
        raise CloudConvertError(f"CloudConvert request failed: {e}") from e

    if not response.ok:
        logger.error(
            "CloudConvert API error: %s %s", response.status_code, response.text[:500]
        )
        raise CloudConvertError(f"CloudConvert API error: {response.status_code}")

    try:
        payload = response.json()
    except ValueError as e:
        raise CloudConvertError(f"CloudConvert returned invalid JSON: {e}") from e
    # The API wraps job payloads in "data"; accept both shapes.
    job = payload.get("data", payload) if isinstance(payload, dict) else {}
    if not isinstance(job, dict):
        job = {}
    output = job.get("output") or []
    first = output[0] if isinstance(output, list) and output else None
    url = first.get("url") if isinstance(first, dict) else None
    if job.get("status") != "completed" or not isinstance(url, str) or not url:
        logger.error("CloudConvert job not completed: %s", job.get("status"))
        raise CloudConvertError("CloudConvert compression not completed")
    return url


def download_output(url: str, session: requests.Session | None = None) -> bytes:
    """
    Downloads a converted file.

    Raises:
        CloudConvertError: If the download fails.
    """
    http = session or requests
    try:
        response = http.get(url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise CloudConvertError(f"Download failed: {e}") from e
    return response.content
