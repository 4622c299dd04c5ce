from .connectivity import ConnectivityMap, analyze_roi_connectivity, CANONICAL_DIRECTIONS, NEIGHBOURHOOD_OFFSETS
from .preprocessing import (Discretization, calc_fractal_width, prepare_fractal_slice, resample_to_square,
                            calculate_resampled_origin)
