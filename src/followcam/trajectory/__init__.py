from .extractor import OfflineTrajectoryExtractor
from .smoothing import TrajectorySmoother, smooth_trajectory

__all__ = ["OfflineTrajectoryExtractor", "TrajectorySmoother", "smooth_trajectory"]
