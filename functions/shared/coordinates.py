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
Screen <-> canvas coordinate conversion for the board.

Coordinate systems:
  - Screen space: pixels relative to the canvas container, origin top-left.
  - Canvas space: logical positions stored on notes and posts, origin at the
    centre of the infinite plane.

The rendered transform is `scale(zoom)` followed by `translate(pan_x, pan_y)`,
so pan is expressed in screen pixels and is applied after scaling.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

MIN_ZOOM = 0.1
MAX_ZOOM = 5.0


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __iter__(self):
        """Allow tuple unpacking: x, y = point"""
        return iter((self.x, self.y))

    def as_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


def screen_to_canvas(
    screen_x: float,
    screen_y: float,
    screen_center_x: float,
    screen_center_y: float,
    zoom: float = 1.0,
    pan_x: float = 0.0,
    pan_y: float = 0.0,
) -> Point:
    """
    Converts a pointer position to canvas coordinates.

    Undoes the rendered transform in reverse order: first the pan
    translation, then the zoom scale.

    Args:
        screen_x (float): X relative to the canvas container.
        screen_y (float): Y relative to the canvas container.
        screen_center_x (float): X of the container's visual centre.
        screen_center_y (float): Y of the container's visual centre.
        zoom (float): Zoom level. Must be positive and finite; use
            `clamp_zoom` before calling.
        pan_x (float): Horizontal pan in screen pixels.
        pan_y (float): Vertical pan in screen pixels.

    Returns:
        Point: The position in canvas space.
    """
    relative_x = screen_x - screen_center_x
    relative_y = screen_y - screen_center_y
    return Point(
        x=(relative_x - pan_x) / zoom,
        y=(relative_y - pan_y) / zoom,
    )


def canvas_to_screen(
    canvas_x: float,
    canvas_y: float,
    screen_center_x: float,
    screen_center_y: float,
    zoom: float = 1.0,
    pan_x: float = 0.0,
    pan_y: float = 0.0,
) -> Point:
    """
    Converts a canvas position to screen coordinates.

    Exact inverse of `screen_to_canvas`: scale by zoom, translate by pan,
    then move back to the container's top-left origin.
    """
    return Point(
        x=canvas_x * zoom + pan_x + screen_center_x,
        y=canvas_y * zoom + pan_y + screen_center_y,
    )


def canvas_pan_to_screen(pan_x: float, pan_y: float, zoom: float) -> Point:
    """Converts a pan stored in canvas units into screen pixels."""
    return Point(x=pan_x * zoom, y=pan_y * zoom)


def clamp_zoom(
    zoom: float, min_zoom: float = MIN_ZOOM, max_zoom: float = MAX_ZOOM
) -> float:
    if math.isnan(zoom):
        raise ValueError("zoom must be a number")
    return min(max(zoom, min_zoom), max_zoom)


@dataclass
class Viewport:
    """Client-side view onto the canvas. Never persisted."""

    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def to_canvas(
        self,
        screen_x: float,
        screen_y: float,
        screen_center_x: float,
        screen_center_y: float,
    ) -> Point:
        return screen_to_canvas(
            screen_x,
            screen_y,
            screen_center_x,
            screen_center_y,
            zoom=self.zoom,
            pan_x=self.pan_x,
            pan_y=self.pan_y,
        )

    def to_screen(
        self,
        canvas_x: float,
        canvas_y: float,
        screen_center_x: float,
        screen_center_y: float,
    ) -> Point:
        return canvas_to_screen(
            canvas_x,
            canvas_y,
            screen_center_x,
            screen_center_y,
            zoom=self.zoom,
            pan_x=self.pan_x,
            pan_y=self.pan_y,
        )
