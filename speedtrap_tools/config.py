#
# config.py: speed monitor configuration
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements loading and validation of static speed monitor configuration
#

"""
Configuration Module Overview
=============================

Static configuration consumed by the speed monitor, loaded from a YAML file, YAML text,
or dictionary and validated against `config_schema`.

Example YAML:
    ```yaml
    field_of_view_degrees: 112
    distance_to_plane: 49.5
    frame_width_pixels: 640
    minimum_contour_area: 3000
    max_disappeared_frames: 20
    max_match_distance: 40
    minimum_travel_distance: 60
    roi: [0, 0, 640, 190]
    refinement_tracker: MOSSE
    ```

All keys are optional; missing keys take defaults.
"""

import os, yaml, jsonschema
from dataclasses import dataclass, field, fields
from typing import List, Optional, Union
from .geometry import CameraGeometry, FPS_TO_MPH
from .identity_tracker import IdentityTracker
from .output_sink import drop_oldest, drop_newest

# schema YAML
config_schema_text = f"""
type: object
additionalProperties: false
properties:
    field_of_view_degrees:
        type: number
        exclusiveMinimum: 0
        exclusiveMaximum: 180
        description: Horizontal camera field of view in degrees
    distance_to_plane:
        type: number
        exclusiveMinimum: 0
        description: Distance from camera to the plane of motion in physical units
    frame_width_pixels:
        type: number
        exclusiveMinimum: 0
        description: Frame width in pixels
    unit_conversion_factor:
        type: number
        exclusiveMinimum: 0
        description: Multiplier converting physical units per second into speed units
    minimum_contour_area:
        type: number
        minimum: 0
        description: Minimum area of a detected contour in pixels
    max_disappeared_frames:
        type: integer
        minimum: 0
        description: Number of missed frames after which an identity is removed
    max_match_distance:
        type: number
        exclusiveMinimum: 0
        description: Maximum distance in pixels to match a detection with an identity
    grace_frames:
        type: integer
        minimum: 0
        description: Initial frames of identity life where misses are not counted
    minimum_travel_distance:
        type: number
        minimum: 0
        description: Minimum travel distance in physical units to report speed
    roi:
        type: array
        items:
            type: integer
        minItems: 4
        maxItems: 4
        description: Snapshot region of interest [x1, y1, x2, y2]
    max_snapshots:
        type: integer
        minimum: 0
        description: Maximum number of snapshots retained per object
    refinement_tracker:
        type: string
        enum: [none, MIL, KCF, CSRT, MOSSE]
        description: Single-object refinement tracker algorithm
    background_mask:
        type: [string, "null"]
        description: Path to background mask image
    sink_queue_size:
        type: integer
        minimum: 1
        description: Depth of output record queue
    sink_drop_policy:
        type: string
        enum: [{drop_oldest}, {drop_newest}]
        description: Which record to drop when output queue is full
"""

config_schema = yaml.safe_load(config_schema_text)


@dataclass
class SpeedMonitorConfig:
    """
    Speed monitor configuration dataclass
    """

    field_of_view_degrees: float = 112
    distance_to_plane: float = 49.5
    frame_width_pixels: float = 640
    unit_conversion_factor: float = FPS_TO_MPH
    minimum_contour_area: float = 3000
    max_disappeared_frames: int = 20
    max_match_distance: float = 40
    grace_frames: int = 0
    minimum_travel_distance: float = 60
    roi: Optional[List[int]] = field(default_factory=lambda: [0, 0, 640, 190])
    max_snapshots: int = 16
    refinement_tracker: str = "MIL"
    background_mask: Optional[str] = None
    sink_queue_size: int = 16
    sink_drop_policy: str = drop_oldest

    @staticmethod
    def load(source: Union[str, dict, None] = None) -> "SpeedMonitorConfig":
        """Load configuration.

        Args:
            source (str | dict, optional): Path to YAML file, YAML text, or dictionary.
                None gives default configuration.

        Returns:
            Loaded configuration.

        Raises:
            jsonschema.ValidationError: If configuration does not match `config_schema`.
            ValueError: If YAML text does not describe a mapping.
        """
        if source is None:
            params: dict = {}
        elif isinstance(source, dict):
            params = source
        else:
            if os.path.isfile(source):
                with open(source) as f:
                    params = yaml.safe_load(f)
            else:
                params = yaml.safe_load(source)
            if params is None:
                params = {}
            if not isinstance(params, dict):
                raise ValueError(f"Configuration must be a mapping, got: {source}")

        jsonschema.validate(instance=params, schema=config_schema)
        return SpeedMonitorConfig(**params)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary"""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def geometry(self) -> CameraGeometry:
        """Create camera geometry from this configuration"""
        return CameraGeometry(
            field_of_view_degrees=self.field_of_view_degrees,
            distance_to_plane=self.distance_to_plane,
            frame_width_pixels=self.frame_width_pixels,
            unit_conversion_factor=self.unit_conversion_factor,
        )

    def identity_tracker(self) -> IdentityTracker:
        """Create identity tracker from this configuration"""
        return IdentityTracker(
            max_disappeared_frames=self.max_disappeared_frames,
            max_match_distance=self.max_match_distance,
            grace_frames=self.grace_frames,
        )
