# frame_analyzer_base.py: base class for frame analyzers
# Copyright SpeedTrap Project 2025
# All rights reserved

"""
Frame Analyzer Base Module Overview
===================================

This module provides a base class (`FrameAnalyzerBase`) for per-frame processing steps and
the `FrameResult` container passed between them.

Key Concepts
------------

- **Analysis**:
  By overriding the `analyze()` method, child classes read the frame detections and augment
  the `FrameResult` with their own data (e.g., tracked boxes or finalized records).

- **Annotation**:
  By overriding the `annotate()` method, child classes draw additional overlays on the
  frame image (e.g., bounding boxes and trajectories).

- **Finalization**:
  `finalize()` is called when the analyzer is discarded, to release accumulated state.

Typical Usage Example
---------------------

```python
class MyAnalyzer(FrameAnalyzerBase):
    def analyze(self, result):
        result.extra = len(result.detections)

    def annotate(self, result, image):
        return image
```
"""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class FrameResult:
    """
    Single frame data passed through analyzers
    """

    frame: np.ndarray  # frame image (BGR)
    timestamp: float  # frame timestamp in seconds
    detections: List[List[float]] = field(default_factory=list)  # boxes (x1, y1, x2, y2)
    tracked_boxes: Dict[Any, List[float]] = field(
        default_factory=dict
    )  # object ID -> current box
    trails: Dict[Any, List[List[float]]] = field(
        default_factory=dict
    )  # object ID -> trajectory points
    finalized: List[Any] = field(default_factory=list)  # records finalized on this frame


class FrameAnalyzerBase(ABC):
    """
    Base class for frame analyzers which extend frame results with new data
    and optionally annotate frame images.

    Subclasses should override:
      - `analyze(result)`: to augment or inspect the frame result.
      - `annotate(result, image)`: to draw additional overlays onto the provided image.
    """

    @abstractmethod
    def analyze(self, result: FrameResult):
        """
        Analyze and optionally modify a frame result.

        Args:
            result (FrameResult): The frame result to analyze.
        """

    def annotate(self, result: FrameResult, image: np.ndarray) -> np.ndarray:
        """
        Annotate an image with additional data derived from the analysis step.

        Args:
            result (FrameResult): The (already analyzed) frame result.
            image (numpy.ndarray): The image to annotate.

        Returns:
            numpy.ndarray: The annotated image. By default the image is returned unchanged.
        """
        return image

    def analyze_and_annotate(self, result: FrameResult, image: np.ndarray) -> np.ndarray:
        """
        Helper method to perform both analysis and annotation in one step.
        """
        self.analyze(result)
        return self.annotate(result, image)

    def finalize(self):
        """
        Perform any cleanup actions before the analyzer is discarded.
        By default, this does nothing.
        """
