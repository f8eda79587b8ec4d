#
# geometry.py: camera geometry model
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements conversion of pixel displacement into physical distance and speed
#

"""
Camera Geometry Module Overview
===============================

Converts distances measured in pixels into physical distances and speeds using the
static parameters of a fixed camera: horizontal field of view, distance from the
camera to the plane the objects move in, and frame width in pixels.

The model assumes that objects move in a plane perpendicular to the camera axis.
This is an approximation: no perspective correction is applied, so objects moving
towards or away from the camera are measured with a growing error.

Typical Usage:
    ```python
    geometry = CameraGeometry(field_of_view_degrees=112, distance_to_plane=49.5, frame_width_pixels=640)
    feet = geometry.physical_distance(45)
    mph = geometry.speed(45, 1.0)
    ```

The units of `distance_to_plane` define the physical distance units. The speed is
`physical_distance / seconds * unit_conversion_factor`; the default factor 0.681818
converts feet per second into miles per hour.
"""

import math
from dataclasses import dataclass
from typing import Optional

# feet per second to miles per hour
FPS_TO_MPH = 0.681818


def deg_to_rad(degrees: float) -> float:
    """Convert degrees to radians."""
    return degrees * math.pi / 180


@dataclass(frozen=True)
class CameraGeometry:
    """
    Static camera parameters and pixel-to-physical conversions
    """

    field_of_view_degrees: float  # horizontal field of view
    distance_to_plane: float  # distance from camera to the motion plane
    frame_width_pixels: float  # frame width in pixels
    unit_conversion_factor: float = FPS_TO_MPH  # speed units multiplier

    def __post_init__(self):
        if not 0 < self.field_of_view_degrees < 180:
            raise ValueError(
                f"Field of view must be in (0, 180) degrees, got {self.field_of_view_degrees}"
            )
        if self.distance_to_plane <= 0:
            raise ValueError(
                f"Distance to plane must be positive, got {self.distance_to_plane}"
            )
        if self.frame_width_pixels <= 0:
            raise ValueError(
                f"Frame width must be positive, got {self.frame_width_pixels}"
            )

    @property
    def frame_width_physical(self) -> float:
        """Width of the visible motion plane in physical units"""
        return (
            2 * math.tan(deg_to_rad(self.field_of_view_degrees / 2)) * self.distance_to_plane
        )

    @property
    def units_per_pixel(self) -> float:
        """Physical units covered by one pixel"""
        return self.frame_width_physical / self.frame_width_pixels

    def physical_distance(self, pixel_distance: float) -> float:
        """Convert pixel distance to physical distance.

        Args:
            pixel_distance (float): Distance in pixels.

        Returns:
            Distance in physical units.
        """
        return pixel_distance * self.units_per_pixel

    def speed(self, pixel_distance: float, duration_s: float) -> Optional[float]:
        """Compute speed of an object which travelled `pixel_distance` in `duration_s` seconds.

        Args:
            pixel_distance (float): Distance travelled in pixels.
            duration_s (float): Elapsed time in seconds.

        Returns:
            Speed in configured units, or None when the duration is not positive.
        """
        if duration_s <= 0:
            return None
        return (
            self.physical_distance(pixel_distance) / duration_s
        ) * self.unit_conversion_factor
