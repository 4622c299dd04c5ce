"""Custom warnings and errors used across roirad."""


class InvalidInputParametersError(ValueError):
    """Custom exception to indicate invalid input parameters."""


class DataStructureWarning(UserWarning):
    """Custom warning to indicate degenerate but tolerated input data."""


class DataStructureError(Exception):
    """Custom exception to indicate invalid input data structure."""


class EmptyROIError(DataStructureError):
    """The ROI mask does not contain a single voxel."""


class ShapeMismatchError(DataStructureError):
    """The image and the ROI mask do not have the same shape."""


class DegenerateIntensityRangeError(DataStructureError):
    """All ROI voxels share one intensity, so the rescaling range is zero."""
