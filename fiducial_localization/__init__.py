from .exceptions import (
    FitError,
    InsufficientPointsError,
    InvalidPointsError,
    InvalidWeightsError,
    RankDeficientSystemError,
    DegenerateFitError,
    LocalizationError,
    NoEdgesFoundError,
    NoComponentFoundError,
)
from .data_structures import SphereEstimate, FiducialResult
from .sphere_fitting import fit_sphere
