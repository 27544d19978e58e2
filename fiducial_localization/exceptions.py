"""Errors raised while localizing fiducials"""


class FitError(ValueError):
    """Base class for sphere fitting failures"""


class InsufficientPointsError(FitError):
    """Fewer points than needed for an over-determined sphere fit"""

    def __init__(self, num_points: int, min_points: int):
        self.num_points = num_points
        self.min_points = min_points
        super().__init__(
            f"Sphere fit needs at least {min_points} points, got {num_points}"
        )


class InvalidPointsError(FitError):
    """Point array has the wrong shape or non-finite coordinates"""


class InvalidWeightsError(FitError):
    """Weight count mismatch, negative/non-finite weight or all weights zero"""


class RankDeficientSystemError(FitError):
    """Design matrix has rank < 4, e.g. coplanar or collinear points"""

    def __init__(self, rank: int):
        self.rank = rank
        super().__init__(
            f"Sphere fit system has rank {rank} < 4 "
            "(points are coplanar, collinear or coincident)"
        )


class DegenerateFitError(FitError):
    """Least squares solution implies r^2 <= 0, so there is no real sphere"""

    def __init__(self, radius_squared: float):
        self.radius_squared = radius_squared
        super().__init__(
            f"Degenerate sphere fit: r^2 = {radius_squared:.6g} is not positive"
        )


class LocalizationError(RuntimeError):
    """Imaging side of localization failed for a region of interest"""


class NoEdgesFoundError(LocalizationError):
    """Edge detection produced an empty edge mask"""


class NoComponentFoundError(LocalizationError):
    """Threshold segmentation left no usable connected component"""
