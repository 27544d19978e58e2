from dataclasses import dataclass, fields, asdict
from .sphere_fitting import RANK_RCOND, MAX_CONDITION_NUMBER


@dataclass
class LocalizationParameters:
    """Parameters for fiducial localization

    Parameters:
        canny_lower_threshold: float = 50.0
            Lower hysteresis threshold on the smoothed gradient magnitude.
            - Smaller values: Longer, more connected edges but more noise edges
            - Larger values: Cleaner edges but gaps on weak marker boundaries

        canny_upper_threshold: float = 150.0
            Upper hysteresis threshold; edges must contain at least one voxel above it.

        canny_variance: float = 1.0 (mm^2)
            Gaussian smoothing variance applied on every axis before edge detection.
            - Smaller values: Sharper edge localization, more sensitive to noise
            - Larger values: Suppresses noise but rounds off small markers

        use_gradient_weights: bool = True
            Weight edge points by gradient magnitude in the edge based fit.

        min_component_voxels: int = 10
            Connected components smaller than this are ignored by the
            segmentation based method.

        rank_rcond: float = 1e-10
            Relative singular value cutoff used to detect rank deficient systems.

        max_condition_number: float = 1e8
            Condition number above which the sphere fit logs a warning.
    """
    canny_lower_threshold: float = 50.0
    canny_upper_threshold: float = 150.0
    canny_variance: float = 1.0  # mm^2
    use_gradient_weights: bool = True
    min_component_voxels: int = 10  # voxels
    rank_rcond: float = RANK_RCOND
    max_condition_number: float = MAX_CONDITION_NUMBER

    def __post_init__(self):
        if self.canny_lower_threshold > self.canny_upper_threshold:
            raise ValueError("canny_lower_threshold must not exceed canny_upper_threshold")
        if self.canny_variance < 0:
            raise ValueError("canny_variance must be non-negative")

    @classmethod
    def get_parameter_sets(cls):
        """Get predefined parameter sets"""
        return {
            'default': cls(),
            'noisy': cls(
                canny_variance=2.0,          # More smoothing for low dose scans
                canny_lower_threshold=80.0,
                canny_upper_threshold=200.0,
                min_component_voxels=20
            ),
            'sharp': cls(
                canny_variance=0.5,          # High resolution, low noise scans
                canny_lower_threshold=30.0,
                canny_upper_threshold=100.0
            )
        }

    @classmethod
    def from_dict(cls, params_dict, base=None):
        """Create parameters from a dictionary of overrides, ignoring unknown keys"""
        values = asdict(base) if base is not None else {}
        known = {f.name for f in fields(cls)}
        values.update({key: value for key, value in params_dict.items() if key in known})
        return cls(**values)

    def to_dict(self):
        return asdict(self)
