from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence

import numpy as np

from followcam.utils.types import OptionalPoint, Point

EDGE_MODES = ("zero", "clamp")


@dataclass(frozen=True)
class TrajectorySmoother:
    """Two-stage stabilizer for a sparse, noisy sequence of subject centers.

    1. Jump rejection: a point farther than ``max_deviation`` from the mean of
       the present points among the last ``window_size`` processed entries is
       replaced by ``None``. Rejected and absent entries occupy window slots,
       so a sustained move is accepted once the stale points have aged out.
    2. Every gap is filled by linear interpolation per coordinate, then a
       clipped median filter of width ``kernel_size`` is applied.

    ``edge_mode`` controls gaps with a present value on one side only:
    ``"zero"`` fills them with 0 (the default), ``"clamp"`` repeats the
    nearest present value.
    """

    window_size: int = 10
    max_deviation: float = 40.0
    kernel_size: int = 5
    edge_mode: str = "zero"

    def __post_init__(self) -> None:
        if self.window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {self.window_size}")
        if self.max_deviation < 0:
            raise ValueError(f"max_deviation must be >= 0, got {self.max_deviation}")
        if self.kernel_size < 1 or self.kernel_size % 2 == 0:
            raise ValueError(f"kernel_size must be a positive odd number, got {self.kernel_size}")
        if self.edge_mode not in EDGE_MODES:
            raise ValueError(f"edge_mode must be one of {EDGE_MODES}, got {self.edge_mode!r}")

    def smooth(self, centers: Sequence[OptionalPoint]) -> List[Point]:
        filtered = self.reject_jumps(centers)
        xs = self.interpolate([None if p is None else p[0] for p in filtered])
        ys = self.interpolate([None if p is None else p[1] for p in filtered])
        sx = self.median(xs)
        sy = self.median(ys)
        return [(float(x), float(y)) for x, y in zip(sx, sy)]

    def reject_jumps(self, centers: Sequence[OptionalPoint]) -> List[OptionalPoint]:
        out: List[OptionalPoint] = []
        window: Deque[OptionalPoint] = deque(maxlen=int(self.window_size))
        for pt in centers:
            if pt is None:
                out.append(None)
                window.append(None)
                continue
            valid = [p for p in window if p is not None]
            if valid:
                mean_x = sum(p[0] for p in valid) / len(valid)
                mean_y = sum(p[1] for p in valid) / len(valid)
                if math.hypot(pt[0] - mean_x, pt[1] - mean_y) > self.max_deviation:
                    out.append(None)
                    window.append(None)
                    continue
            p = (float(pt[0]), float(pt[1]))
            out.append(p)
            window.append(p)
        return out

    def interpolate(self, values: Sequence[Optional[float]]) -> np.ndarray:
        n = len(values)
        idx = np.arange(n, dtype=np.float64)
        # NaN marks gaps only inside this step
        arr = np.array([np.nan if v is None else float(v) for v in values], dtype=np.float64)
        good = ~np.isnan(arr)
        if not good.any():
            return np.zeros(n, dtype=np.float64)
        if good.all():
            return arr
        if self.edge_mode == "clamp":
            arr[~good] = np.interp(idx[~good], idx[good], arr[good])
        else:
            arr[~good] = np.interp(idx[~good], idx[good], arr[good], left=0.0, right=0.0)
        return arr

    def median(self, values: Sequence[float]) -> np.ndarray:
        data = np.asarray(values, dtype=np.float64)
        n = data.shape[0]
        radius = int(self.kernel_size) // 2
        out = np.empty(n, dtype=np.float64)
        for i in range(n):
            window = np.sort(data[max(0, i - radius) : min(n, i + radius + 1)])
            out[i] = window[window.shape[0] // 2]
        return out


def smooth_trajectory(
    centers: Sequence[OptionalPoint],
    window_size: int = 10,
    max_deviation: float = 40.0,
    kernel_size: int = 5,
    edge_mode: str = "zero",
) -> List[Point]:
    return TrajectorySmoother(
        window_size=window_size,
        max_deviation=max_deviation,
        kernel_size=kernel_size,
        edge_mode=edge_mode,
    ).smooth(centers)
