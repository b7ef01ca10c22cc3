from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from followcam.utils.types import VideoFrame


logger = logging.getLogger("followcam.utils.image")

_TO_BGR = {
    "bgra": cv2.COLOR_BGRA2BGR,
    "rgba": cv2.COLOR_RGBA2BGR,
    "rgb24": cv2.COLOR_RGB2BGR,
    "gray": cv2.COLOR_GRAY2BGR,
    "nv12": cv2.COLOR_YUV2BGR_NV12,
    "yuv420p": cv2.COLOR_YUV2BGR_I420,
}


def to_bgr(frame: VideoFrame) -> Optional[np.ndarray]:
    """Convert a captured frame to a contiguous BGR image, or None if it cannot be read."""
    data = frame.data
    if data is None or data.size == 0 or data.ndim < 2:
        logger.debug("Empty frame buffer (format=%s)", frame.pixel_format)
        return None
    fmt = frame.pixel_format.lower()
    try:
        if fmt == "bgr24":
            if data.ndim != 3 or data.shape[2] != 3:
                return None
            return np.ascontiguousarray(data)
        code = _TO_BGR.get(fmt)
        if code is None:
            logger.warning("Unsupported pixel format for conversion: %s", fmt)
            return None
        return cv2.cvtColor(data, code)
    except cv2.error:
        logger.warning("Frame conversion failed (format=%s shape=%s)", fmt, data.shape, exc_info=True)
        return None
