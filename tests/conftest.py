import numpy as np
import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests on synthetic arrays")
    config.addinivalue_line("markers", "integration: end-to-end extraction and batch tests")


@pytest.fixture
def rng():
    """
    Seeded random generator so that synthetic volumes are reproducible between runs.
    """
    return np.random.default_rng(20240917)


@pytest.fixture
def eight_voxel_cube():
    """
    2x2x2 volume with intensities 1..8 and an all-true mask.

    Returns:
        tuple: (image, mask)
    """
    image = np.arange(1, 9, dtype=np.float64).reshape((2, 2, 2))
    mask = np.ones((2, 2, 2), dtype=bool)
    return image, mask


@pytest.fixture
def centred_cube_roi(rng):
    """
    10x10x6 random volume with a 4x4x4 cubic ROI away from the borders.

    Returns:
        tuple: (image, mask)
    """
    image = rng.uniform(1.0, 100.0, size=(10, 10, 6))
    mask = np.zeros(image.shape, dtype=bool)
    mask[3:7, 2:6, 1:5] = True
    return image, mask


@pytest.fixture
def random_volume(rng):
    """
    6x6x6 random volume used by the whole-volume mode.
    """
    return rng.uniform(-50.0, 50.0, size=(6, 6, 6))
