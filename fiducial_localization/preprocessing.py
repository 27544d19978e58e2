import numpy as np
import SimpleITK as sitk
import logging
from typing import Sequence, Tuple
from .exceptions import LocalizationError

logger = logging.getLogger(__name__)


def load_volume(path: str) -> sitk.Image:
    """Read a CT volume (any format SimpleITK understands)"""
    try:
        logger.info(f"Loading volume {path}...")
        image = sitk.ReadImage(path)
        logger.info(f"Volume size: {image.GetSize()}, spacing: {image.GetSpacing()}")
        return image
    except Exception as e:
        logger.error(f"Loading volume failed: {str(e)}")
        raise


def extract_roi(image: sitk.Image, index: Sequence[int], size: Sequence[int]) -> sitk.Image:
    """Crop a region of interest, keeping the physical coordinate frame

    Args:
        image: Input SimpleITK image
        index: Start voxel index (x, y, z)
        size: Region size in voxels (x, y, z)

    Returns:
        Cropped image whose origin is moved so that physical points are unchanged
    """
    index = [int(i) for i in index]
    size = [int(s) for s in size]
    image_size = image.GetSize()
    if len(index) != image.GetDimension() or len(size) != image.GetDimension():
        raise LocalizationError(f"ROI index/size must have {image.GetDimension()} components")
    for start, extent, limit in zip(index, size, image_size):
        if start < 0 or extent <= 0 or start + extent > limit:
            raise LocalizationError(
                f"ROI index {index} size {size} lies outside image of size {image_size}"
            )
    return sitk.RegionOfInterest(image, size=size, index=index)


def roi_around_point(image: sitk.Image, center_mm: Sequence[float],
                     half_width_mm: float) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """Compute the ROI index and size of a box around a physical point

    The box is clipped to the image extent.

    Args:
        image: Input SimpleITK image
        center_mm: Box center in physical coordinates
        half_width_mm: Half of the box edge length in mm

    Returns:
        index, size: ROI start index and size in voxels (x, y, z)
    """
    center_index = np.array(image.TransformPhysicalPointToIndex([float(c) for c in center_mm]))
    image_size = np.array(image.GetSize())
    if np.any(center_index < 0) or np.any(center_index >= image_size):
        raise LocalizationError(f"Point {tuple(center_mm)} lies outside the image")

    half_width = np.ceil(half_width_mm / np.array(image.GetSpacing())).astype(int)
    start = np.maximum(center_index - half_width, 0)
    end = np.minimum(center_index + half_width, image_size - 1)

    return tuple(int(v) for v in start), tuple(int(v) for v in end - start + 1)
