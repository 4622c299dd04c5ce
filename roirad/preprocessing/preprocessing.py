import logging
import warnings

import SimpleITK as sitk
import numpy as np

from ..exceptions import (InvalidInputParametersError, DataStructureError, DataStructureWarning,
                          DegenerateIntensityRangeError)
from ..settings import DEFAULT_NUMBER_OF_BINS, INTENSITY_RANGE_POLICIES, MAX_FRACTAL_EXPONENT, MAX_FRACTAL_WIDTH
from ..toolbox_logic import get_bounding_box, bounding_box_slices

logger = logging.getLogger(__name__)


class Discretization:
    """
    Fixed bin number discretisation of ROI intensities into the gray levels 1..N.

    The rescaling range is taken from the ROI voxels only (or from the support voxels when a
    wider support is given). The maximum lands on N + 1 after flooring and is put back to N.
    """

    def __init__(self, number_of_bins=DEFAULT_NUMBER_OF_BINS, intensity_range_policy='collapse'):
        if isinstance(number_of_bins, bool) or not isinstance(number_of_bins, (int, np.integer)) or number_of_bins < 1:
            raise InvalidInputParametersError(f'Number of bins {number_of_bins} must be a positive int.')
        if intensity_range_policy not in INTENSITY_RANGE_POLICIES:
            raise InvalidInputParametersError(f"Intensity range policy '{intensity_range_policy}' is not one of "
                                              f"{', '.join(INTENSITY_RANGE_POLICIES)}.")

        self.number_of_bins = int(number_of_bins)
        self.intensity_range_policy = intensity_range_policy
        self.min_val = None
        self.max_val = None

    def discretize(self, image_array, roi, support=None):
        """
        Returns an integer grid of the same shape as ``image_array`` with values in [1, N].

        Voxels outside the support are clipped into [1, N]; only ROI voxels carry meaning.
        """
        if support is None:
            support = roi
        support_values = image_array[support]
        self.min_val = np.min(support_values)
        self.max_val = np.max(support_values)

        if self.max_val == self.min_val:
            if self.intensity_range_policy == 'strict':
                raise DegenerateIntensityRangeError(f'All ROI voxels have intensity {self.min_val}, '
                                                    'the discretisation range is zero.')
            message = f'Constant ROI intensity {self.min_val}, all voxels collapsed to gray level 1.'
            logger.warning(message)
            warnings.warn(message, DataStructureWarning)
            return np.ones(image_array.shape, dtype=int)

        scaled = self.number_of_bins * (image_array - self.min_val) / (self.max_val - self.min_val)
        scaled = np.where(np.isfinite(scaled), scaled, 0.0)
        grid = np.floor(scaled).astype(int) + 1
        grid[grid == self.number_of_bins + 1] = self.number_of_bins

        return np.clip(grid, 1, self.number_of_bins)


def calc_fractal_width(shape):
    """Smallest power-of-two side (2..1024) that holds the largest dimension of ``shape``."""
    largest = max(shape)
    for exponent in range(1, MAX_FRACTAL_EXPONENT + 1):
        if 2 ** exponent >= largest:
            return 2 ** exponent
    raise DataStructureError(f'Fractal analysis supports at most {MAX_FRACTAL_WIDTH} pixels per dimension, '
                             f'got {largest}.')


def prepare_fractal_slice(image_array, mask_array):
    """
    Extracts the 2D slice analysed by the fractal estimator.

    The crop uses the row/column bounding box of the mask projected over all slices, which can
    differ from the 3D bounding box used by the texture matrices. The slice with the largest ROI
    area is taken (lowest index on ties). Pixels outside the ROI are NaN.
    """
    image_array = np.asarray(image_array, dtype=np.float64)
    mask_array = np.asarray(mask_array, dtype=bool)
    if mask_array.ndim == 2:
        image_array = image_array[:, :, np.newaxis]
        mask_array = mask_array[:, :, np.newaxis]

    projection = mask_array.any(axis=2)
    rows, cols = bounding_box_slices(get_bounding_box(projection))

    z = int(np.argmax(np.count_nonzero(mask_array, axis=(0, 1))))
    masked_slice = np.where(mask_array[:, :, z], image_array[:, :, z], np.nan)

    return masked_slice[rows, cols]


def calculate_resampled_origin(n_a, s_a, s_b, n_b, x_a=0.0):
    """Origin keeping the centre of the resampled grid on the centre of the initial grid."""
    return x_a + (s_a * (n_a - 1) - s_b * (n_b - 1)) / 2


def _resample_2d(array, width):
    sitk_image = sitk.GetImageFromArray(array)
    sitk_image.SetSpacing((1.0, 1.0))
    sitk_image.SetOrigin((0.0, 0.0))

    # SimpleITK orders axes as (x, y) = (columns, rows)
    initial_size = sitk_image.GetSize()
    output_spacing = [initial_size[axis] / width for axis in range(2)]
    output_origin = [calculate_resampled_origin(initial_size[axis], 1.0, output_spacing[axis], width)
                     for axis in range(2)]

    resample_filter = sitk.ResampleImageFilter()
    resample_filter.SetOutputSpacing(output_spacing)
    resample_filter.SetOutputOrigin(output_origin)
    resample_filter.SetOutputDirection(sitk_image.GetDirection())
    resample_filter.SetSize([width, width])
    resample_filter.SetOutputPixelType(sitk.sitkFloat64)
    resample_filter.SetDefaultPixelValue(0.0)
    resample_filter.SetInterpolator(sitk.sitkLinear)

    return sitk.GetArrayFromImage(resample_filter.Execute(sitk_image))


def resample_to_square(array, width=None):
    """
    Resamples a 2D array with NaN background onto a ``width`` x ``width`` grid by linear interpolation.

    Values and the validity mask are interpolated separately; output pixels with less than half
    of their interpolation weight on valid input pixels become NaN.
    """
    array = np.asarray(array, dtype=np.float64)
    if width is None:
        width = calc_fractal_width(array.shape)
    if array.shape == (width, width):
        return array.copy()

    valid = np.isfinite(array)
    values = _resample_2d(np.where(valid, array, 0.0), width)
    weights = _resample_2d(valid.astype(np.float64), width)

    resampled = np.full((width, width), np.nan)
    covered = weights >= 0.5
    resampled[covered] = values[covered] / weights[covered]

    return resampled
