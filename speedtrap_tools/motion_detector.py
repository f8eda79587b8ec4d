#
# motion_detector.py: background subtraction motion detector
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements detection of moving object boxes by foreground segmentation
#

import cv2, numpy as np
from typing import List, Optional, Union


class MotionDetector:
    """Detects moving objects in frames of a fixed camera.

    Foreground is obtained by MOG2 background subtraction, thresholded and median-blurred.
    Bounding boxes of external contours are reported when the contour area is at least
    `minimum_area` and, when a background mask is given, the box center falls into
    a non-black mask pixel.
    """

    def __init__(
        self,
        minimum_area: float = 3000,
        background_mask: Union[str, np.ndarray, None] = None,
        *,
        threshold: int = 25,
        blur_kernel: int = 7,
    ):
        """Constructor.

        Args:
            minimum_area (float, optional): Minimum contour area in pixels.
            background_mask (str | np.ndarray, optional): Mask image or path to it; black pixels
                mark regions where objects are ignored.
            threshold (int, optional): Foreground binarization threshold.
            blur_kernel (int, optional): Median blur kernel size, odd number.

        Raises:
            Exception: If mask image cannot be read.
        """
        if blur_kernel % 2 == 0:
            raise ValueError(f"Blur kernel size must be odd, got {blur_kernel}")

        self._minimum_area = minimum_area
        self._threshold = threshold
        self._blur_kernel = blur_kernel
        self._subtractor = cv2.createBackgroundSubtractorMOG2()

        self._mask: Optional[np.ndarray] = None
        if isinstance(background_mask, str):
            self._mask = cv2.imread(background_mask, cv2.IMREAD_COLOR)
            if self._mask is None:
                raise Exception(f"Error reading image from: {background_mask}")
        elif background_mask is not None:
            self._mask = np.asarray(background_mask)

    def foreground(self, frame: np.ndarray) -> np.ndarray:
        """Compute cleaned binary foreground mask of the frame"""
        delta = self._subtractor.apply(frame)
        _, thresh = cv2.threshold(delta, self._threshold, 255, cv2.THRESH_BINARY)
        return cv2.medianBlur(thresh, self._blur_kernel)

    def is_inside_mask(self, box) -> bool:
        """Check that box center falls into non-black pixel of the background mask"""
        if self._mask is None:
            return True
        h, w = self._mask.shape[:2]
        cx = min(max(int((box[0] + box[2]) / 2), 0), w - 1)
        cy = min(max(int((box[1] + box[3]) / 2), 0), h - 1)
        return bool(np.any(self._mask[cy, cx] > 0))

    def boxes_from_foreground(self, foreground: np.ndarray) -> List[List[int]]:
        """Extract filtered object boxes from binary foreground mask.

        Args:
            foreground (np.ndarray): Single-channel binary image.

        Returns:
            List of boxes ``[x1, y1, x2, y2]``.
        """
        contours, _ = cv2.findContours(
            foreground, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
        )
        boxes = []
        for c in contours:
            if cv2.contourArea(c) < self._minimum_area:
                continue
            x, y, w, h = cv2.boundingRect(c)
            box = [x, y, x + w, y + h]
            if self.is_inside_mask(box):
                boxes.append(box)
        return boxes

    def detect(self, frame: np.ndarray) -> List[List[int]]:
        """Detect moving object boxes in the frame"""
        return self.boxes_from_foreground(self.foreground(frame))
