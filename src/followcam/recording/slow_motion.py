from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction

from followcam.utils.types import Time


@dataclass(frozen=True)
class SlowMotionContext:
    enabled: bool
    session_start_time: Time
    factor: Fraction = Fraction(4)

    def __post_init__(self) -> None:
        if Fraction(self.factor) <= 0:
            raise ValueError(f"Slow-motion factor must be a positive rational, got {self.factor}")

    def remap(self, timestamp: Time) -> Time:
        """origin + (t - origin) * factor; identity when disabled."""
        if not self.enabled:
            return timestamp
        origin = self.session_start_time
        return origin + (timestamp - origin) * Fraction(self.factor)
