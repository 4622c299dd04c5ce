import numpy as np
import pytest

from roirad.exceptions import (DataStructureError, DataStructureWarning, DegenerateIntensityRangeError,
                               InvalidInputParametersError)
from roirad.preprocessing import (Discretization, calc_fractal_width, prepare_fractal_slice, resample_to_square,
                                  calculate_resampled_origin)


@pytest.mark.unit
def test_constructor_valid_inputs():
    discretization = Discretization(number_of_bins=64, intensity_range_policy='strict')
    assert discretization.number_of_bins == 64
    assert discretization.intensity_range_policy == 'strict'


@pytest.mark.unit
@pytest.mark.parametrize("invalid_number_of_bins", [0, -1, 2.5, None, "abc", True])
def test_constructor_invalid_number_of_bins(invalid_number_of_bins):
    with pytest.raises(InvalidInputParametersError) as exc_info:
        Discretization(number_of_bins=invalid_number_of_bins)
    assert "must be a positive int" in str(exc_info.value)


@pytest.mark.unit
def test_constructor_invalid_policy():
    with pytest.raises(InvalidInputParametersError) as exc_info:
        Discretization(intensity_range_policy='clip')
    assert "Intensity range policy 'clip'" in str(exc_info.value)


@pytest.mark.unit
def test_discretize_eight_distinct_values(eight_voxel_cube):
    image, mask = eight_voxel_cube
    grid = Discretization(8).discretize(image, mask)

    np.testing.assert_array_equal(grid, image.astype(int))


@pytest.mark.unit
def test_discretize_identity_on_integer_levels(rng):
    image = rng.integers(1, 17, size=(5, 5, 5)).astype(np.float64)
    image[0, 0, 0] = 1
    image[-1, -1, -1] = 16
    mask = np.ones(image.shape, dtype=bool)

    grid = Discretization(16).discretize(image, mask)

    np.testing.assert_array_equal(grid, image.astype(int))


@pytest.mark.unit
@pytest.mark.parametrize("number_of_bins", [1, 2, 7, 64, 255])
def test_discretize_range(rng, number_of_bins):
    image = rng.normal(size=(6, 6, 6))
    mask = image > -0.5
    discretization = Discretization(number_of_bins)
    grid = discretization.discretize(image, mask)

    assert grid[mask].min() >= 1
    assert grid[mask].max() == number_of_bins
    assert grid[mask][np.argmin(image[mask])] == 1
    assert discretization.min_val == pytest.approx(image[mask].min())
    assert discretization.max_val == pytest.approx(image[mask].max())


@pytest.mark.unit
def test_discretize_ignores_intensities_outside_roi(eight_voxel_cube):
    image, mask = eight_voxel_cube
    padded_image = np.pad(image, 1, mode='constant', constant_values=1000.0)
    padded_mask = np.pad(mask, 1, mode='constant', constant_values=False)

    grid = Discretization(8).discretize(padded_image, padded_mask)

    np.testing.assert_array_equal(grid[padded_mask], image.astype(int).ravel())


@pytest.mark.unit
def test_discretize_constant_roi_collapses_with_warning():
    image = np.full((3, 3, 3), 42.0)
    mask = np.ones(image.shape, dtype=bool)

    with pytest.warns(DataStructureWarning):
        grid = Discretization(16).discretize(image, mask)
    assert np.all(grid == 1)


@pytest.mark.unit
def test_discretize_constant_roi_strict():
    image = np.full((3, 3, 3), 42.0)
    mask = np.ones(image.shape, dtype=bool)

    with pytest.raises(DegenerateIntensityRangeError) as exc_info:
        Discretization(16, intensity_range_policy='strict').discretize(image, mask)
    assert "discretisation range is zero" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.parametrize("shape, expected", [((1, 1), 2), ((2, 2), 2), ((3, 1), 4), ((5, 17), 32),
                                             ((64, 64), 64), ((1024, 7), 1024)])
def test_calc_fractal_width(shape, expected):
    assert calc_fractal_width(shape) == expected


@pytest.mark.unit
def test_calc_fractal_width_too_large():
    with pytest.raises(DataStructureError) as exc_info:
        calc_fractal_width((1025, 3))
    assert "at most 1024 pixels" in str(exc_info.value)


@pytest.mark.unit
def test_prepare_fractal_slice_largest_slice_in_projected_box():
    image = np.arange(6 * 6 * 2, dtype=np.float64).reshape((6, 6, 2))
    mask = np.zeros(image.shape, dtype=bool)
    mask[0:2, 0:2, 0] = True
    mask[3:6, 3:6, 1] = True

    fractal_slice = prepare_fractal_slice(image, mask)

    # The crop spans both slices' rows and columns, not only the chosen slice's ROI
    assert fractal_slice.shape == (6, 6)
    assert np.count_nonzero(np.isfinite(fractal_slice)) == 9
    assert np.isnan(fractal_slice[0, 0])
    assert fractal_slice[3, 3] == image[3, 3, 1]


@pytest.mark.unit
def test_prepare_fractal_slice_ties_take_lowest_index():
    image = np.stack([np.full((4, 4), 1.0), np.full((4, 4), 2.0)], axis=2)
    mask = np.zeros(image.shape, dtype=bool)
    mask[1:3, 1:3, :] = True

    fractal_slice = prepare_fractal_slice(image, mask)

    assert fractal_slice.shape == (2, 2)
    assert np.all(fractal_slice == 1.0)


@pytest.mark.unit
def test_prepare_fractal_slice_2d_input():
    image = np.arange(16, dtype=np.float64).reshape((4, 4))
    mask = np.zeros((4, 4), dtype=bool)
    mask[1:3, 0:4] = True

    np.testing.assert_array_equal(prepare_fractal_slice(image, mask), image[1:3, :])


@pytest.mark.unit
def test_calculate_resampled_origin_keeps_centre():
    assert calculate_resampled_origin(4, 1.0, 0.5, 8) == pytest.approx(-0.25)
    assert calculate_resampled_origin(3, 1.0, 3 / 4, 4) == pytest.approx(-0.125)


@pytest.mark.unit
def test_resample_to_square_constant_image():
    resampled = resample_to_square(np.ones((3, 5)))

    assert resampled.shape == (8, 8)
    assert np.any(np.isfinite(resampled))
    np.testing.assert_allclose(resampled[np.isfinite(resampled)], 1.0)


@pytest.mark.unit
def test_resample_to_square_keeps_square_input():
    array = np.arange(16, dtype=np.float64).reshape((4, 4))
    array[0, 0] = np.nan

    resampled = resample_to_square(array)

    np.testing.assert_array_equal(resampled, array)
    assert resampled is not array

