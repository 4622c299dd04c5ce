import numpy as np

# Gray levels used by the interactive single-ROI evaluation.
DEFAULT_NUMBER_OF_BINS = 255

# Gray levels used by whole-volume batch runs.
DEFAULT_VOLUME_NUMBER_OF_BINS = 64

INTENSITY_RANGE_POLICIES = ('collapse', 'strict')

# Added inside every logarithm of the co-occurrence statistics.
LOG_EPSILON = np.finfo(np.float64).eps

# Box-size table of the fractal estimator stops at 2**10.
MAX_FRACTAL_EXPONENT = 10
MAX_FRACTAL_WIDTH = 2 ** MAX_FRACTAL_EXPONENT
