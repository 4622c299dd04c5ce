import numpy as np


def format_unit(unit_format, units):
    """
    Combines a unit-format template with the physical unit of the image series.

    The template uses printf style, e.g. ``format_unit('%s^2', 'mm')`` gives ``'mm^2'``.
    Dimensionless features carry the empty template and yield ``''``.
    """
    if not unit_format:
        return ''
    if '%s' in unit_format:
        return unit_format % units
    return unit_format


class Image:
    """In-memory image series handed over by the review tool: voxel array plus its physical unit."""

    def __init__(self, array=None, units='px'):
        self.array = array
        self.units = units
        self.shape = None if array is None else np.shape(array)

    def unit_string(self, unit_format):
        return format_unit(unit_format, self.units)


def as_array(image):
    """Returns the voxel array of an ``Image`` or passes an array-like through."""
    if isinstance(image, Image):
        return image.array
    return image
