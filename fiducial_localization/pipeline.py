import os
import json
import logging
from typing import Dict, List, Optional, Sequence, Tuple
import SimpleITK as sitk
from tqdm import tqdm
from .data_structures import FiducialResult, LocalizationMethod
from .edge_localization import localize_by_edges
from .exceptions import FitError, LocalizationError
from .parameters import LocalizationParameters
from .preprocessing import extract_roi, load_volume
from .segmentation_localization import localize_by_segmentation

logger = logging.getLogger(__name__)

# (index, size) of a region of interest, both in voxels (x, y, z)
ROI = Tuple[Sequence[int], Sequence[int]]


class FiducialLocalizer:
    """
    Localizes spherical fiducials in regions of interest of a CT volume.
    Each ROI is expected to contain a single marker.
    """

    def __init__(self,
                 image: sitk.Image,
                 params: Optional[LocalizationParameters] = None,
                 methods: Sequence[LocalizationMethod] = tuple(LocalizationMethod),
                 output_dir: Optional[str] = None):
        """
        Initialize the localizer

        Args:
            image: CT volume
            params: Localization parameters (defaults if None)
            methods: Localization methods to run on every ROI
            output_dir: Optional directory for the log file and results
        """
        self.image = image
        self.params = params or LocalizationParameters()
        self.methods = [LocalizationMethod(m) for m in methods]
        self.output_dir = output_dir

        if output_dir is not None:
            os.makedirs(output_dir, exist_ok=True)

    def localize_roi(self, roi_id: int, index: Sequence[int], size: Sequence[int]) -> List[FiducialResult]:
        """Run every configured method on one ROI

        Failures are recorded in the returned results, one per method.
        """
        try:
            roi_image = extract_roi(self.image, index, size)
        except LocalizationError as e:
            logger.warning(f"ROI {roi_id}: {e}")
            error = f"{type(e).__name__}: {e}"
            return [FiducialResult(roi_id, method, error=error) for method in self.methods]

        results = []
        for method in self.methods:
            try:
                if method is LocalizationMethod.SEGMENTATION:
                    estimate = localize_by_segmentation(roi_image, self.params)
                else:
                    estimate = localize_by_edges(
                        roi_image,
                        self.params,
                        weighted=method is LocalizationMethod.WEIGHTED_EDGES
                    )
            except (FitError, LocalizationError) as e:
                logger.warning(f"ROI {roi_id}: {method.value} localization failed: {e}")
                results.append(FiducialResult(roi_id, method, error=f"{type(e).__name__}: {e}"))
                continue

            logger.info(f"ROI {roi_id}: {method.value} center="
                        f"({', '.join(f'{v:.3f}' for v in estimate.center)}) radius={estimate.radius:.3f}")
            results.append(FiducialResult(roi_id, method, estimate=estimate))
        return results

    def process(self, rois: Sequence[ROI]) -> List[FiducialResult]:
        """Localize the fiducial in every ROI"""
        if self.output_dir is None:
            return self._localize_all(rois)

        # Set up logging to file for the whole package during this run
        package_logger = logging.getLogger(__package__)
        previous_level = package_logger.level
        if package_logger.getEffectiveLevel() > logging.INFO:
            package_logger.setLevel(logging.INFO)
        file_handler = logging.FileHandler(os.path.join(self.output_dir, 'localization.log'))
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        package_logger.addHandler(file_handler)

        try:
            results = self._localize_all(rois)
            save_results(results, os.path.join(self.output_dir, 'fiducials.json'), self.params)
            return results
        except Exception as e:
            logger.error(f"Error during fiducial localization: {str(e)}")
            raise
        finally:
            package_logger.removeHandler(file_handler)
            file_handler.close()
            package_logger.setLevel(previous_level)

    def _localize_all(self, rois: Sequence[ROI]) -> List[FiducialResult]:
        logger.info(f"Localizing fiducials in {len(rois)} ROIs with methods: "
                    f"{', '.join(m.value for m in self.methods)}")

        results = []
        for roi_id, (index, size) in enumerate(tqdm(rois, desc="Localizing fiducials", unit="roi")):
            results.extend(self.localize_roi(roi_id, index, size))

        failed = sum(1 for r in results if not r.succeeded)
        logger.info(f"Localization completed: {len(results) - failed} estimates, {failed} failures")
        return results


def save_results(results: List[FiducialResult], output_path: str,
                 params: Optional[LocalizationParameters] = None) -> None:
    """Save localization results as JSON"""
    output: Dict = {'fiducials': [r.to_dict() for r in results]}
    if params is not None:
        output['parameters'] = params.to_dict()

    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(output, f, indent=2)
    logger.info(f"Saved {len(results)} results to {output_path}")


def run_localization(input_path: str, rois: Sequence[ROI],
                     output_dir: Optional[str] = None,
                     params: Optional[LocalizationParameters] = None,
                     methods: Sequence[LocalizationMethod] = tuple(LocalizationMethod)) -> List[FiducialResult]:
    """Load a volume and localize the fiducials in the given ROIs"""
    image = load_volume(input_path)
    localizer = FiducialLocalizer(image, params=params, methods=methods, output_dir=output_dir)
    return localizer.process(rois)
