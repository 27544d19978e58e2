import numpy as np
import SimpleITK as sitk
import logging
from typing import Callable, Optional, Sequence, Tuple
from .data_structures import SphereEstimate
from .exceptions import NoEdgesFoundError
from .parameters import LocalizationParameters
from .sphere_fitting import fit_sphere

logger = logging.getLogger(__name__)

# Voxel index (x, y, z) -> physical point (x, y, z)
IndexToPhysical = Callable[[Tuple[int, int, int]], Sequence[float]]
# Voxel index (x, y, z) -> gradient magnitude
GradientLookup = Callable[[Tuple[int, int, int]], float]


def edge_points_from_mask(edge_mask: np.ndarray,
                          index_to_physical: IndexToPhysical,
                          gradient_magnitude: Optional[GradientLookup] = None):
    """Convert an edge mask into physical edge points and optional weights

    Args:
        edge_mask: 3D array in (z, y, x) order, non-zero on edge voxels
        index_to_physical: Maps an (x, y, z) voxel index to a physical point
        gradient_magnitude: Optional, maps an (x, y, z) voxel index to the
            local gradient magnitude used as the point weight

    Returns:
        points: (m, 3) physical points
        weights: (m,) weights, or None when no gradient lookup is given
    """
    voxel_indices = np.argwhere(np.asarray(edge_mask) > 0)[:, ::-1]
    indices = [tuple(int(v) for v in idx) for idx in voxel_indices]

    points = np.array([index_to_physical(idx) for idx in indices], dtype=float).reshape(-1, 3)
    if gradient_magnitude is None:
        return points, None

    weights = np.array([gradient_magnitude(idx) for idx in indices], dtype=float)
    return points, weights


def detect_edges(image: sitk.Image, lower_threshold: float, upper_threshold: float,
                 variance: float) -> sitk.Image:
    """Canny edge detection with the same Gaussian variance on every axis"""
    try:
        float_image = sitk.Cast(image, sitk.sitkFloat32)
        return sitk.CannyEdgeDetection(
            float_image,
            lowerThreshold=float(lower_threshold),
            upperThreshold=float(upper_threshold),
            variance=[float(variance)] * image.GetDimension()
        )
    except Exception as e:
        logger.error(f"Canny edge detection failed: {str(e)}")
        raise


def gradient_magnitude_image(image: sitk.Image, variance: float) -> sitk.Image:
    """Gradient magnitude at the same smoothing scale as the edge detector"""
    float_image = sitk.Cast(image, sitk.sitkFloat32)
    if variance > 0:
        return sitk.GradientMagnitudeRecursiveGaussian(float_image, sigma=float(np.sqrt(variance)))
    return sitk.GradientMagnitude(float_image)


def localize_by_edges(image: sitk.Image,
                      params: Optional[LocalizationParameters] = None,
                      weighted: Optional[bool] = None) -> SphereEstimate:
    """Localize a spherical fiducial by edge detection and sphere fitting

    Args:
        image: ROI containing a single fiducial
        params: Localization parameters (defaults if None)
        weighted: Weight edge points by gradient magnitude; defaults to
            params.use_gradient_weights

    Returns:
        SphereEstimate in physical coordinates

    Raises:
        NoEdgesFoundError: If no edge voxels were detected
        FitError: If the sphere fit fails
    """
    params = params or LocalizationParameters()
    if weighted is None:
        weighted = params.use_gradient_weights

    edges = detect_edges(
        image,
        params.canny_lower_threshold,
        params.canny_upper_threshold,
        params.canny_variance
    )
    edge_mask = sitk.GetArrayFromImage(edges) > 0
    num_edges = int(np.sum(edge_mask))
    if num_edges == 0:
        raise NoEdgesFoundError(
            f"No edges found with thresholds [{params.canny_lower_threshold}, "
            f"{params.canny_upper_threshold}] and variance {params.canny_variance}"
        )
    logger.info(f"Found {num_edges} edge voxels")

    gradient_lookup = None
    if weighted:
        gradient = sitk.GetArrayFromImage(gradient_magnitude_image(image, params.canny_variance))
        gradient_lookup = lambda idx: gradient[idx[2], idx[1], idx[0]]

    points, weights = edge_points_from_mask(
        edge_mask,
        image.TransformIndexToPhysicalPoint,
        gradient_lookup
    )

    return fit_sphere(
        points,
        weights,
        rcond=params.rank_rcond,
        max_condition_number=params.max_condition_number
    )
