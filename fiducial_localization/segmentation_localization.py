import SimpleITK as sitk
import logging
from typing import Optional
from .data_structures import SphereEstimate
from .exceptions import NoComponentFoundError
from .parameters import LocalizationParameters

logger = logging.getLogger(__name__)


def threshold_segmentation(image: sitk.Image) -> sitk.Image:
    """Otsu threshold; voxels brighter than the threshold (the marker) become 1"""
    try:
        return sitk.OtsuThreshold(image, 0, 1)
    except Exception as e:
        logger.error(f"Otsu thresholding failed: {str(e)}")
        raise


def localize_by_segmentation(image: sitk.Image,
                             params: Optional[LocalizationParameters] = None) -> SphereEstimate:
    """Localize a spherical fiducial from threshold segmentation shape statistics

    The largest connected component of the Otsu segmentation is taken as the
    marker. Its centroid and equivalent spherical radius, both in physical
    units, form the estimate.

    Raises:
        NoComponentFoundError: If no component reaches params.min_component_voxels
    """
    params = params or LocalizationParameters()

    segmentation = threshold_segmentation(image)
    components = sitk.ConnectedComponent(segmentation)

    shape_stats = sitk.LabelShapeStatisticsImageFilter()
    shape_stats.Execute(components)

    labels = [label for label in shape_stats.GetLabels()
              if shape_stats.GetNumberOfPixels(label) >= params.min_component_voxels]
    logger.info(f"Found {shape_stats.GetNumberOfLabels()} components, "
                f"{len(labels)} with at least {params.min_component_voxels} voxels")
    if not labels:
        raise NoComponentFoundError("Threshold segmentation produced no usable component")

    marker = max(labels, key=shape_stats.GetNumberOfPixels)
    return SphereEstimate(
        center=tuple(float(v) for v in shape_stats.GetCentroid(marker)),
        radius=float(shape_stats.GetEquivalentSphericalRadius(marker)),
        num_points=int(shape_stats.GetNumberOfPixels(marker))
    )
