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

"""Anonymous author identity helpers. Not a security boundary."""

from __future__ import annotations

import random
import string
import time
from typing import Optional

DEFAULT_AUTHOR_NAME = "Anonymous"
AUTHOR_ID_PREFIX = "user_"
AUTHOR_ID_SUFFIX_LENGTH = 9

_BASE36_ALPHABET = string.digits + string.ascii_lowercase


def generate_author_id(
    now_ms: Optional[int] = None, rng: Optional[random.Random] = None
) -> str:
    """
    Generates an anonymous author id shaped like the browser client's:
    `user_<epoch-ms>_<9 base-36 chars>`.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    rng = rng or random.Random()
    suffix = "".join(
        rng.choice(_BASE36_ALPHABET) for _ in range(AUTHOR_ID_SUFFIX_LENGTH)
    )
    return f"{AUTHOR_ID_PREFIX}{now_ms}_{suffix}"


def normalize_author_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        return DEFAULT_AUTHOR_NAME
    return name.strip()


def is_same_author(author_id: Optional[str], candidate: Optional[str]) -> bool:
    if not author_id or not candidate:
        return False
    return author_id == candidate
