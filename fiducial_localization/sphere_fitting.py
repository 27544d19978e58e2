import numpy as np
import logging
from typing import Optional, Tuple
from scipy.linalg import lstsq
from .data_structures import SphereEstimate
from .exceptions import (
    InsufficientPointsError,
    InvalidPointsError,
    InvalidWeightsError,
    RankDeficientSystemError,
    DegenerateFitError,
)

logger = logging.getLogger(__name__)

# m > n + 1 for a sphere in 3D
MIN_POINTS = 5

# Singular values below RANK_RCOND * largest are treated as zero
RANK_RCOND = 1e-10

# Above this the fit is returned but flagged in the log
MAX_CONDITION_NUMBER = 1e8


def build_algebraic_system(points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Build the linear system A [c; k] = b of the algebraic sphere fit

    The algebraic distance of point p to the sphere (c, r) is
    p'p - 2p'c + c'c - r^2. With k = c'c - r^2 it is linear in (c, k), so each
    point contributes the row [-2x, -2y, -2z, 1] to A and -(x^2 + y^2 + z^2) to b.

    Args:
        points: (m, 3) array of physical points

    Returns:
        A: (m, 4) design matrix
        b: (m,) right hand side
    """
    points = np.asarray(points, dtype=float)
    A = np.empty((len(points), 4))
    A[:, :3] = -2.0 * points
    A[:, 3] = 1.0
    b = -np.sum(points**2, axis=1)
    return A, b


def solve_algebraic_system(A: np.ndarray, b: np.ndarray,
                           weights: Optional[np.ndarray] = None,
                           rcond: float = RANK_RCOND,
                           max_condition_number: float = MAX_CONDITION_NUMBER) -> Tuple[np.ndarray, float, float]:
    """Solve the (weighted) algebraic sphere system in the least squares sense

    Uses an SVD based solver instead of the normal equations. With weights the
    residual of row i is scaled by sqrt(w_i), which minimizes sum(w_i * delta_i^2).

    Args:
        A: (m, 4) design matrix from build_algebraic_system
        b: (m,) right hand side
        weights: Optional (m,) non-negative row weights
        rcond: Relative singular value cutoff used for the rank test
        max_condition_number: Condition number above which a warning is logged

    Returns:
        center: (3,) sphere center
        k: c'c - r^2
        condition_number: Ratio of largest to smallest singular value

    Raises:
        RankDeficientSystemError: If the numerical rank of the system is below 4
    """
    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float).ravel()

    if weights is not None:
        sqrt_w = np.sqrt(np.asarray(weights, dtype=float))
        A = A * sqrt_w[:, np.newaxis]
        b = b * sqrt_w

    solution, _, rank, singular_values = lstsq(A, b, cond=rcond, lapack_driver='gelsd')

    if rank < 4:
        raise RankDeficientSystemError(rank)

    condition_number = float(singular_values[0] / singular_values[-1])
    if condition_number > max_condition_number:
        logger.warning(f"Sphere fit system is ill-conditioned (condition number {condition_number:.3g}); "
                       "points may be nearly coplanar or cover too little of the sphere")

    return solution[:3], float(solution[3]), condition_number


def sphere_from_parameters(center: np.ndarray, k: float) -> float:
    """Recover the radius from the solved parameters, r^2 = c'c - k

    Raises:
        DegenerateFitError: If r^2 is not a positive finite number
    """
    center = np.asarray(center, dtype=float)
    radius_squared = float(np.dot(center, center) - k)
    if not np.isfinite(radius_squared) or radius_squared <= 0:
        raise DegenerateFitError(radius_squared)
    return float(np.sqrt(radius_squared))


def _validate_points(points) -> np.ndarray:
    points = np.array(points, dtype=float)
    if points.size == 0:
        points = points.reshape(0, 3)
    if points.ndim != 2 or points.shape[1] != 3:
        raise InvalidPointsError(f"Expected points with shape (m, 3), got {points.shape}")
    if len(points) < MIN_POINTS:
        raise InsufficientPointsError(len(points), MIN_POINTS)
    if not np.all(np.isfinite(points)):
        raise InvalidPointsError("Point coordinates must be finite")
    return points


def _validate_weights(weights, num_points: int) -> np.ndarray:
    weights = np.array(weights, dtype=float)
    if weights.shape != (num_points,):
        raise InvalidWeightsError(f"Expected {num_points} weights, got shape {weights.shape}")
    if not np.all(np.isfinite(weights)):
        raise InvalidWeightsError("Weights must be finite")
    if np.any(weights < 0):
        raise InvalidWeightsError("Weights must be non-negative")
    if not np.any(weights > 0):
        raise InvalidWeightsError("At least one weight must be positive")
    return weights


def fit_sphere(points, weights=None,
               rcond: float = RANK_RCOND,
               max_condition_number: float = MAX_CONDITION_NUMBER) -> SphereEstimate:
    """Fit a sphere to 3D points by (weighted) linear least squares

    Minimizes the sum of squared algebraic distances, or sum(w_i * delta_i^2)
    when weights are given. Only relative weight magnitudes matter and zero
    weights remove a point from the fit. The inputs are not modified.

    Args:
        points: (m, 3) physical points in mm, m >= 5
        weights: Optional (m,) non-negative weights, e.g. gradient magnitudes
        rcond: Relative singular value cutoff for the rank test
        max_condition_number: Condition number above which a warning is logged

    Returns:
        SphereEstimate

    Raises:
        InsufficientPointsError: Fewer than 5 points
        InvalidPointsError: Bad shape or non-finite coordinates
        InvalidWeightsError: Bad weight count, negative or all-zero weights
        RankDeficientSystemError: Coplanar, collinear or coincident points
        DegenerateFitError: Solution implies r^2 <= 0
    """
    points = _validate_points(points)
    if weights is not None:
        weights = _validate_weights(weights, len(points))

    # Algebraic distance is translation invariant; centering only improves conditioning
    origin = np.average(points, axis=0, weights=weights)
    A, b = build_algebraic_system(points - origin)

    center, k, condition_number = solve_algebraic_system(
        A, b, weights,
        rcond=rcond,
        max_condition_number=max_condition_number
    )
    radius = sphere_from_parameters(center, k)
    center = center + origin

    used = points if weights is None else points[weights > 0]
    residuals = np.linalg.norm(used - center, axis=1) - radius
    rms_residual = float(np.sqrt(np.mean(residuals**2)))

    logger.debug(f"Fitted sphere to {len(used)} points: center={center}, radius={radius:.4f}, "
                 f"rms={rms_residual:.4f}, cond={condition_number:.3g}")

    return SphereEstimate(
        center=tuple(float(v) for v in center),
        radius=radius,
        num_points=len(used),
        rms_residual=rms_residual,
        condition_number=condition_number
    )
