from enum import Enum
from dataclasses import dataclass, asdict
from typing import Tuple, Optional, Dict


class LocalizationMethod(Enum):
    """Ways of estimating a fiducial sphere"""
    SEGMENTATION = 'segmentation'
    EDGES = 'edges'
    WEIGHTED_EDGES = 'weighted_edges'


@dataclass(frozen=True)
class SphereEstimate:
    """Best-fit sphere in physical coordinates (mm)

    Attributes:
        center: Sphere center (x, y, z)
        radius: Sphere radius, always > 0
        num_points: Number of points the estimate was computed from
        rms_residual: RMS geometric distance of the points to the sphere surface
            (None when the method computes no residual)
        condition_number: Condition number of the solved linear system
            (None when the estimate did not come from a least squares fit)
    """
    center: Tuple[float, float, float]
    radius: float
    num_points: int = 0
    rms_residual: Optional[float] = None
    condition_number: Optional[float] = None

    def to_dict(self) -> Dict:
        result = asdict(self)
        result['center'] = list(self.center)
        return result


@dataclass
class FiducialResult:
    """Outcome of localizing one fiducial with one method"""
    roi_id: int
    method: LocalizationMethod
    estimate: Optional[SphereEstimate] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.estimate is not None

    def to_dict(self) -> Dict:
        return {
            'roi_id': self.roi_id,
            'method': self.method.value,
            'estimate': self.estimate.to_dict() if self.estimate is not None else None,
            'error': self.error
        }
