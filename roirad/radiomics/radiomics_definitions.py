import logging
from collections import namedtuple

import numpy as np
from scipy.ndimage import convolve, label, generate_binary_structure

from ..preprocessing.connectivity import CANONICAL_DIRECTIONS
from ..preprocessing.preprocessing import calc_fractal_width, resample_to_square
from ..settings import LOG_EPSILON

logger = logging.getLogger(__name__)

FeatureDescriptor = namedtuple('FeatureDescriptor', ['category', 'metrics', 'unit_format'])

FEATURE_REGISTRY = {}


class FeatureFamily:
    """
    Base class of the feature-producing units.

    Every subclass declares its category, the ordered (attribute, metric label) pairs and the
    unit-format template as class attributes, so names and units are available without running
    any computation. Subclasses register themselves in ``FEATURE_REGISTRY`` by category.
    """

    CATEGORY = None
    METRICS = ()
    UNIT_FORMAT = ''

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.CATEGORY and cls.CATEGORY not in FEATURE_REGISTRY:
            FEATURE_REGISTRY[cls.CATEGORY] = cls

    @classmethod
    def descriptor(cls):
        return FeatureDescriptor(cls.CATEGORY, tuple(metric for _, metric in cls.METRICS), cls.UNIT_FORMAT)

    @classmethod
    def feature_names(cls):
        return [f'{cls.CATEGORY} - {metric}' for _, metric in cls.METRICS]

    @classmethod
    def number_of_features(cls):
        return len(cls.METRICS)

    def feature_values(self):
        return [getattr(self, attribute) for attribute, _ in self.METRICS]


class HistogramFeatures(FeatureFamily):
    """First-order statistics of the discretised gray-level distribution (Materka & Strzelecki 1998)."""

    CATEGORY = 'Histogram'
    METRICS = (('mean', 'Mean'),
               ('variance', 'Variance'),
               ('skewness', 'Skewness'),
               ('kurtosis', 'Kurtosis'),
               ('energy', 'Energy'),
               ('entropy', 'Entropy'))

    def __init__(self, image, roi, number_of_bins):
        self.image = image
        self.roi = roi
        self.lvl = number_of_bins
        self.histogram = None
        self.probabilities = None

        self.mean = 0
        self.variance = 0
        self.skewness = 0
        self.kurtosis = 0
        self.energy = 0
        self.entropy = 0

    def calc_histogram(self):
        self.histogram = np.bincount(self.image[self.roi] - 1, minlength=self.lvl)[:self.lvl]
        self.probabilities = self.histogram / np.sum(self.histogram)

    def calc_histogram_features(self):
        p = self.probabilities
        i = np.arange(1, self.lvl + 1)

        self.mean = np.sum(i * p)
        self.variance = np.sum((i - self.mean) ** 2 * p)

        # Higher moments are defined as zero for a single occupied gray level.
        if self.variance > 0:
            self.skewness = np.sum((i - self.mean) ** 3 * p) / self.variance ** 1.5
            self.kurtosis = np.sum((i - self.mean) ** 4 * p) / self.variance ** 2 - 3
        else:
            self.skewness = 0
            self.kurtosis = 0

        self.energy = np.sum(p ** 2)
        non_zero = p > 0
        self.entropy = (-1) * np.sum(p[non_zero] * np.log(p[non_zero]))


class GTSDM(FeatureFamily):
    """
    Gray-tone spatial dependence (co-occurrence) matrices over the 13 unique 3D directions.

    Haralick (1973) features 1-14, Soh (1999) features 15-19 and the Clausi (2002) inverse
    difference are computed for every direction and averaged over all 13 directions, so a flat ROI
    yields NaN. With ``average_populated_directions`` only directions holding voxel pairs enter the
    mean. Gray levels are indexed from 1 in all formulas. The maximal correlation coefficient is
    not computed and is reported as 0.
    """

    CATEGORY = 'GTSDM'
    METRICS = (('ang_second_moment', 'Angular Second Moment'),
               ('contrast', 'Contrast'),
               ('cor', 'Correlation'),
               ('sum_of_squares_var', 'Sum of squares variance'),
               ('inv_diff_moment', 'Inverse Difference moment'),
               ('sum_average', 'Sum average'),
               ('sum_var', 'Sum variance'),
               ('sum_entropy', 'Sum Entropy'),
               ('entropy', 'Entropy'),
               ('dif_var', 'Difference Variance'),
               ('dif_entropy', 'Difference Entropy'),
               ('inf_cor_1', 'Information Correlation 1'),
               ('inf_cor_2', 'Information Correlation 2'),
               ('max_cor_coef', 'Maximal Correlation Coefficient (=0)'),
               ('autocor', 'Autocorrelation'),
               ('dissimilarity', 'Dissimilarity'),
               ('cluster_shade', 'Cluster Shade'),
               ('cluster_prominence', 'Cluster Prominence'),
               ('joint_max', 'Maximum Probability'),
               ('inv_diff', 'Inverse Difference'))

    DIRECTIONS = CANONICAL_DIRECTIONS

    def __init__(self, image, connectivity, number_of_bins, average_populated_directions=False):
        self.image = image
        self.connectivity = connectivity
        self.lvl = number_of_bins
        self.average_populated_directions = average_populated_directions
        self.gtsdm_3d_matrix = None
        self.direction_features_ = None

        self.ang_second_moment = 0
        self.contrast = 0
        self.cor = 0
        self.sum_of_squares_var = 0
        self.inv_diff_moment = 0
        self.sum_average = 0
        self.sum_var = 0
        self.sum_entropy = 0
        self.entropy = 0
        self.dif_var = 0
        self.dif_entropy = 0
        self.inf_cor_1 = 0
        self.inf_cor_2 = 0
        self.max_cor_coef = 0
        self.autocor = 0
        self.dissimilarity = 0
        self.cluster_shade = 0
        self.cluster_prominence = 0
        self.joint_max = 0
        self.inv_diff = 0

    def calc_gtsdm_3d_matrix(self):
        coords = self.connectivity.voxel_coords
        levels = self.image[tuple(coords.T)] - 1

        self.gtsdm_3d_matrix = np.zeros((self.lvl, self.lvl, len(self.DIRECTIONS)), dtype=np.float64)
        for d_idx, direction in enumerate(self.DIRECTIONS):
            connected = self.connectivity.offset_connected(direction)
            neighbour_levels = self.image[tuple((coords[connected] + direction).T)] - 1

            co_matrix = np.zeros((self.lvl, self.lvl), dtype=np.float64)
            np.add.at(co_matrix, (levels[connected], neighbour_levels), 1)

            # +/- offsets describe the same pairs
            self.gtsdm_3d_matrix[:, :, d_idx] = co_matrix + co_matrix.T

        logger.debug(f"GTSDM pair counts per direction: {self.gtsdm_3d_matrix.sum(axis=(0, 1)).astype(int).tolist()}")

    @staticmethod
    def _entropy(p):
        return (-1) * np.sum(p * np.log(p + LOG_EPSILON))

    def calc_p_plus(self, matrix):
        """p_{x+y}(k) for k = 2..2N."""
        i, j = np.indices(matrix.shape) + 1
        p_plus = np.bincount((i + j).ravel(), weights=matrix.ravel(), minlength=2 * self.lvl + 1)
        return p_plus[2:]

    def calc_p_minus(self, matrix):
        """p_{x-y}(k) for k = 0..N-1."""
        i, j = np.indices(matrix.shape)
        return np.bincount(np.abs(i - j).ravel(), weights=matrix.ravel(), minlength=self.lvl)

    def calc_mu_and_sigma(self, matrix):
        g = np.arange(1, self.lvl + 1)
        p_x = np.sum(matrix, axis=1)
        p_y = np.sum(matrix, axis=0)
        mu_x = np.sum(g * p_x)
        mu_y = np.sum(g * p_y)
        sigma_x = np.sqrt(np.sum((g - mu_x) ** 2 * p_x))
        sigma_y = np.sqrt(np.sum((g - mu_y) ** 2 * p_y))
        return mu_x, mu_y, sigma_x, sigma_y

    def calc_second_moment(self, matrix):
        return np.sum(matrix ** 2)

    def calc_contrast(self, p_minus):
        k = np.arange(len(p_minus))
        return np.sum(k ** 2 * p_minus)

    def calc_correlation(self, matrix):
        i, j = np.indices(matrix.shape) + 1
        mu_x, mu_y, sigma_x, sigma_y = self.calc_mu_and_sigma(matrix)
        if sigma_x * sigma_y == 0:
            return np.inf
        return (np.sum(i * j * matrix) - mu_x * mu_y) / (sigma_x * sigma_y)

    def calc_sum_of_squares_var(self, matrix):
        # Haralick leaves mu undefined; the mean of the normalised matrix is used.
        i, _ = np.indices(matrix.shape) + 1
        return np.sum((i - np.mean(matrix)) ** 2 * matrix)

    def calc_inv_diff_moment(self, matrix):
        i, j = np.indices(matrix.shape)
        return np.sum(matrix / (1 + (i - j) ** 2))

    def calc_sum_average(self, p_plus):
        k = np.arange(2, len(p_plus) + 2)
        return np.sum(k * p_plus)

    def calc_sum_var(self, p_plus, sum_average):
        k = np.arange(2, len(p_plus) + 2)
        return np.sum((k - sum_average) ** 2 * p_plus)

    def calc_dif_var(self, p_minus):
        k = np.arange(len(p_minus))
        mu = np.sum(k * p_minus)
        return np.sum((k - mu) ** 2 * p_minus)

    def calc_information_correlation(self, matrix):
        p_x = np.sum(matrix, axis=1)
        p_y = np.sum(matrix, axis=0)
        p_xy = np.outer(p_x, p_y)

        hxy = self._entropy(matrix)
        hxy_1 = (-1) * np.sum(matrix * np.log(p_xy + LOG_EPSILON))
        hxy_2 = self._entropy(p_xy)
        hx = self._entropy(p_x)
        hy = self._entropy(p_y)

        if max(hx, hy) <= 0:
            inf_cor_1 = np.inf
        else:
            inf_cor_1 = (hxy - hxy_1) / max(hx, hy)
        inf_cor_2 = np.sqrt(max(0.0, 1 - np.exp(-2 * (hxy_2 - hxy))))

        return inf_cor_1, inf_cor_2

    def calc_autocor(self, matrix):
        i, j = np.indices(matrix.shape) + 1
        return np.sum(i * j * matrix)

    def calc_dissimilarity(self, matrix):
        i, j = np.indices(matrix.shape)
        return np.sum(np.abs(i - j) * matrix)

    def calc_cluster_shade_prominence(self, matrix, power):
        i, j = np.indices(matrix.shape) + 1
        mu_x, mu_y, _, _ = self.calc_mu_and_sigma(matrix)
        return np.sum((i + j - mu_x - mu_y) ** power * matrix)

    def calc_inverse_diff(self, matrix):
        i, j = np.indices(matrix.shape)
        return np.sum(matrix / (1 + np.abs(i - j)))

    def calc_direction_features(self, matrix):
        """Returns the 20 features of one directional matrix, NaN for a matrix without pairs."""
        norm = np.sum(matrix)
        if norm == 0:
            return np.full(len(self.METRICS), np.nan)

        p = matrix / norm
        p_plus = self.calc_p_plus(p)
        p_minus = self.calc_p_minus(p)
        sum_average = self.calc_sum_average(p_plus)
        inf_cor_1, inf_cor_2 = self.calc_information_correlation(p)

        return np.array([self.calc_second_moment(p),
                         self.calc_contrast(p_minus),
                         self.calc_correlation(p),
                         self.calc_sum_of_squares_var(p),
                         self.calc_inv_diff_moment(p),
                         sum_average,
                         self.calc_sum_var(p_plus, sum_average),
                         self._entropy(p_plus),
                         self._entropy(p),
                         self.calc_dif_var(p_minus),
                         self._entropy(p_minus),
                         inf_cor_1,
                         inf_cor_2,
                         0.0,
                         self.calc_autocor(p),
                         self.calc_dissimilarity(p),
                         self.calc_cluster_shade_prominence(p, 3),
                         self.calc_cluster_shade_prominence(p, 4),
                         np.max(p),
                         self.calc_inverse_diff(p)])

    def calc_3d_averaged_gtsdm_features(self):
        self.direction_features_ = np.array([self.calc_direction_features(self.gtsdm_3d_matrix[:, :, d_idx])
                                             for d_idx in range(len(self.DIRECTIONS))])

        populated = np.sum(self.gtsdm_3d_matrix, axis=(0, 1)) > 0
        if not np.any(populated):
            logger.warning('No co-occurring voxel pairs in any direction, GTSDM features are NaN.')
        elif not np.all(populated):
            logger.debug(f"GTSDM: {np.count_nonzero(~populated)} of {len(self.DIRECTIONS)} directions without "
                         f"voxel pairs.")

        if self.average_populated_directions and np.any(populated):
            averaged = np.mean(self.direction_features_[populated], axis=0)
        else:
            # A direction without pairs is NaN and makes the mean over all 13 directions NaN.
            averaged = np.mean(self.direction_features_, axis=0)

        for (attribute, _), value in zip(self.METRICS, averaged):
            setattr(self, attribute, value)


class NGTDM(FeatureFamily):
    """
    Neighbourhood gray-tone difference matrix (Amadasun & King 1989).

    Only voxels with the complete 26-neighbourhood inside the ROI contribute. Busyness uses the
    absolute value inside its double sum (Materka & Strzelecki 1998). Zero denominators give +inf,
    contrast is -1 when fewer than two gray levels are occupied.
    """

    CATEGORY = 'NGTDM'
    METRICS = (('coarseness', 'Coarseness'),
               ('contrast', 'Contrast'),
               ('busyness', 'Busyness'),
               ('complexity', 'Complexity'),
               ('strength', 'Texture Strength'))

    def __init__(self, image, connectivity, number_of_bins):
        self.image = image
        self.connectivity = connectivity
        self.lvl = number_of_bins
        self.ngtd_3d_matrix = None
        self.occurrences = None

        self.coarseness = 0
        self.contrast = 0
        self.busyness = 0
        self.complexity = 0
        self.strength = 0

    def calc_ngtd_3d_matrix(self):
        full = self.connectivity.full_neighbourhood
        coords = tuple(self.connectivity.voxel_coords[full].T)

        # 3x3x3 kernel of ones, with center zeroed
        kernel = np.ones((3, 3, 3), dtype=np.float64)
        kernel[1, 1, 1] = 0
        neighbour_sum = convolve(self.image.astype(np.float64), kernel, mode='constant', cval=0.0)

        levels = self.image[coords]
        neighbour_mean = neighbour_sum[coords] / 26

        self.ngtd_3d_matrix = np.bincount(levels - 1, weights=np.abs(levels - neighbour_mean),
                                          minlength=self.lvl)[:self.lvl]
        self.occurrences = np.bincount(levels - 1, minlength=self.lvl)[:self.lvl]

        logger.debug(f"NGTDM: {np.count_nonzero(~full)} ROI voxels without a complete neighbourhood excluded.")

    def _probabilities(self):
        total = np.sum(self.occurrences)
        if total == 0:
            return np.zeros(self.lvl)
        return self.occurrences / total

    def calc_coarseness(self, p, s):
        denum = np.sum(p * s)
        if denum == 0:
            return np.inf
        return 1 / denum

    def calc_contrast(self, p, s):
        n_g = np.count_nonzero(p)
        if n_g < 2:
            return -1
        i, j = np.indices((self.lvl, self.lvl))
        first_term = np.sum(np.outer(p, p) * (i - j) ** 2) / (n_g * (n_g - 1))
        second_term = np.sum(s) / np.sum(self.occurrences)
        return first_term * second_term

    def calc_busyness(self, p, s):
        nz = np.flatnonzero(p)
        g = nz + 1
        num = np.sum(p * s)
        denum = np.sum(np.abs(np.subtract.outer(g * p[nz], g * p[nz])))
        if denum == 0:
            return np.inf
        return num / denum

    def calc_complexity(self, p, s):
        nz = np.flatnonzero(p)
        g = nz + 1
        p_nz = p[nz]
        ps_nz = p[nz] * s[nz]

        weighted = np.add.outer(ps_nz, ps_nz)
        if np.all(weighted == 0):
            return np.inf
        terms = np.abs(np.subtract.outer(g, g)) * weighted / np.add.outer(p_nz, p_nz)
        return np.sum(terms) / np.sum(self.occurrences)

    def calc_strength(self, p, s):
        nz = np.flatnonzero(p)
        g = nz + 1
        denum = np.sum(s)
        if denum == 0:
            return np.inf
        num = np.sum(np.add.outer(p[nz], p[nz]) * np.subtract.outer(g, g) ** 2)
        return num / denum

    def calc_3d_ngtdm_features(self):
        p = self._probabilities()
        s = self.ngtd_3d_matrix

        self.coarseness = self.calc_coarseness(p, s)
        self.contrast = self.calc_contrast(p, s)
        self.busyness = self.calc_busyness(p, s)
        self.complexity = self.calc_complexity(p, s)
        self.strength = self.calc_strength(p, s)


class GLZSM(FeatureFamily):
    """Gray-level zone-size matrix from 26-connected zones (Tang 1998 run-length metrics)."""

    CATEGORY = 'GLZSM'
    METRICS = (('small_zone_emphasis', 'Small Zone Size Emphasis'),
               ('large_zone_emphasis', 'Large Zone Size Emphasis'),
               ('low_gr_lvl_emphasis', 'Low Gray-Level Zone Emphasis'),
               ('high_gr_lvl_emphasis', 'High Gray-Level Zone Emphasis'),
               ('small_low_gr_lvl_emphasis', 'Small Zone / Low Gray Emphasis'),
               ('small_high_gr_lvl_emphasis', 'Small Zone / High Gray Emphasis'),
               ('large_low_gr_lvl_emphasis', 'Large Zone / Low Gray Emphasis'),
               ('large_high_gr_lvl_emphasis', 'Large Zone / High Gray Emphasis'),
               ('non_uniformity', 'Gray-Level Non-Uniformity'),
               ('zone_size_non_uniformity', 'Zone Size Non-Uniformity'),
               ('percentage', 'Zone Size Percentage'))

    def __init__(self, image, roi, number_of_bins):
        self.image = image
        self.roi = roi
        self.lvl = number_of_bins
        self.tot_no_of_roi_voxels = int(np.count_nonzero(roi))
        self.glzsm_3d_matrix = None

        self.small_zone_emphasis = 0
        self.large_zone_emphasis = 0
        self.low_gr_lvl_emphasis = 0
        self.high_gr_lvl_emphasis = 0
        self.small_low_gr_lvl_emphasis = 0
        self.small_high_gr_lvl_emphasis = 0
        self.large_low_gr_lvl_emphasis = 0
        self.large_high_gr_lvl_emphasis = 0
        self.non_uniformity = 0
        self.zone_size_non_uniformity = 0
        self.percentage = 0

    def calc_glzs_3d_matrix(self):
        structure = generate_binary_structure(3, 3)
        zone_levels = []
        zone_sizes = []

        for gr_lvl in np.unique(self.image[self.roi]):
            level_mask = (self.image == gr_lvl) & self.roi
            labels, no_of_zones = label(level_mask, structure=structure)
            sizes = np.bincount(labels.ravel())[1:]
            zone_levels.append(np.full(no_of_zones, gr_lvl))
            zone_sizes.append(sizes)

        zone_levels = np.concatenate(zone_levels)
        zone_sizes = np.concatenate(zone_sizes)

        # Columns beyond the largest zone would stay empty
        self.glzsm_3d_matrix = np.zeros((self.lvl, np.max(zone_sizes)), dtype=np.int64)
        np.add.at(self.glzsm_3d_matrix, (zone_levels - 1, zone_sizes - 1), 1)

        logger.debug(f"GLZSM: {len(zone_sizes)} zones, largest zone {np.max(zone_sizes)} voxels.")

    def calc_short_emphasis(self, m):
        _, z = np.indices(m.shape) + 1
        return np.sum(m / z ** 2) / np.sum(m)

    def calc_long_emphasis(self, m):
        _, z = np.indices(m.shape) + 1
        return np.sum(m * z ** 2) / np.sum(m)

    def calc_low_gr_lvl_emphasis(self, m):
        g, _ = np.indices(m.shape) + 1
        return np.sum(m / g ** 2) / np.sum(m)

    def calc_high_gr_lvl_emphasis(self, m):
        g, _ = np.indices(m.shape) + 1
        return np.sum(m * g ** 2) / np.sum(m)

    def calc_short_low_gr_lvl_emphasis(self, m):
        g, z = np.indices(m.shape) + 1
        return np.sum(m / (g ** 2 * z ** 2)) / np.sum(m)

    def calc_short_high_gr_lvl_emphasis(self, m):
        g, z = np.indices(m.shape) + 1
        return np.sum(m * g ** 2 / z ** 2) / np.sum(m)

    def calc_long_low_gr_lvl_emphasis(self, m):
        g, z = np.indices(m.shape) + 1
        return np.sum(m * z ** 2 / g ** 2) / np.sum(m)

    def calc_long_high_gr_lvl_emphasis(self, m):
        g, z = np.indices(m.shape) + 1
        return np.sum(m * g ** 2 * z ** 2) / np.sum(m)

    def calc_non_uniformity(self, m):
        return np.sum(np.sum(m, axis=1) ** 2) / np.sum(m)

    def calc_zone_size_non_uniformity(self, m):
        return np.sum(np.sum(m, axis=0) ** 2) / np.sum(m)

    def calc_percentage(self, m, n_v):
        # Voxel-weighted, not divided by the number of zones
        _, z = np.indices(m.shape) + 1
        return np.sum(m * z) / n_v

    def calc_3d_glzsm_features(self):
        m = self.glzsm_3d_matrix.astype(np.float64)

        self.small_zone_emphasis = self.calc_short_emphasis(m)
        self.large_zone_emphasis = self.calc_long_emphasis(m)
        self.low_gr_lvl_emphasis = self.calc_low_gr_lvl_emphasis(m)
        self.high_gr_lvl_emphasis = self.calc_high_gr_lvl_emphasis(m)
        self.small_low_gr_lvl_emphasis = self.calc_short_low_gr_lvl_emphasis(m)
        self.small_high_gr_lvl_emphasis = self.calc_short_high_gr_lvl_emphasis(m)
        self.large_low_gr_lvl_emphasis = self.calc_long_low_gr_lvl_emphasis(m)
        self.large_high_gr_lvl_emphasis = self.calc_long_high_gr_lvl_emphasis(m)
        self.non_uniformity = self.calc_non_uniformity(m)
        self.zone_size_non_uniformity = self.calc_zone_size_non_uniformity(m)
        self.percentage = self.calc_percentage(m, self.tot_no_of_roi_voxels)


class FractalFeatures(FeatureFamily):
    """
    Multi-scale box-counting fractal dimensions of a 2D ROI slice.

    The slice (NaN outside the ROI) is resampled to a power-of-two square and partitioned into
    boxes of side width/2, width/4, ..., 1. Three measures are regressed against the box size
    on a log-log scale:

    * basic box counting: boxes holding at least one nonzero ROI pixel; dimension = -slope
    * modified (differential) box counting: sum over boxes of max - min + 1; dimension = -slope
    * triangular prism surface area: four Heron triangles spanned by the box corners and their
      mean-height centre; dimension = 2 - slope

    Fewer than two scales or a non-positive count make the regression degenerate; the affected
    dimension is NaN.
    """

    CATEGORY = 'Fractal'
    METRICS = (('box_counting_dim', 'Box Counting'),
               ('modified_box_counting_dim', 'Modified Box Counting'),
               ('tpsa_dim', 'Triangular Prism Surface Area'))

    def __init__(self, image):
        self.image = np.asarray(image, dtype=np.float64)
        self.width = None
        self.resampled_image = None
        self.box_sizes = None
        self.box_counts = None
        self.modified_box_counts = None
        self.surface_areas = None

        self.box_counting_dim = np.nan
        self.modified_box_counting_dim = np.nan
        self.tpsa_dim = np.nan

    def calc_box_counts(self):
        self.width = calc_fractal_width(self.image.shape)
        no_of_scales = int(np.log2(self.width))
        self.box_sizes = np.array([self.width // 2 ** k for k in range(1, no_of_scales + 1)])

        if no_of_scales < 2:
            # A single scale cannot be regressed, skip the resampling as well
            self.box_counts = self.modified_box_counts = self.surface_areas = np.array([])
            return

        self.resampled_image = resample_to_square(self.image, self.width)

        box_counts = []
        modified_box_counts = []
        surface_areas = []
        for box_size in self.box_sizes:
            n = self.width // box_size
            boxes = self.resampled_image.reshape(n, box_size, n, box_size).swapaxes(1, 2)
            finite = np.isfinite(boxes)

            box_counts.append(np.count_nonzero(np.any(finite & (boxes != 0), axis=(2, 3))))
            modified_box_counts.append(self.calc_modified_box_count(boxes, finite))
            surface_areas.append(self.calc_prism_surface_area(np.where(finite, boxes, 0.0), box_size))

        self.box_counts = np.array(box_counts, dtype=np.float64)
        self.modified_box_counts = np.array(modified_box_counts, dtype=np.float64)
        self.surface_areas = np.array(surface_areas, dtype=np.float64)

    @staticmethod
    def calc_modified_box_count(boxes, finite):
        occupied = np.any(finite, axis=(2, 3))
        box_max = np.max(np.where(finite, boxes, -np.inf), axis=(2, 3))
        box_min = np.min(np.where(finite, boxes, np.inf), axis=(2, 3))
        return np.sum(box_max[occupied] - box_min[occupied] + 1)

    @staticmethod
    def calc_prism_surface_area(boxes, box_size):
        a = boxes[:, :, 0, 0]
        b = boxes[:, :, 0, -1]
        c = boxes[:, :, -1, 0]
        d = boxes[:, :, -1, -1]
        e = (a + b + c + d) / 4

        # Edges between neighbouring corners and from every corner to the centre
        w = np.sqrt((b - a) ** 2 + box_size ** 2)
        x = np.sqrt((c - b) ** 2 + box_size ** 2)
        y = np.sqrt((d - c) ** 2 + box_size ** 2)
        z = np.sqrt((a - d) ** 2 + box_size ** 2)
        o = np.sqrt((a - e) ** 2 + 0.5 * box_size ** 2)
        p = np.sqrt((b - e) ** 2 + 0.5 * box_size ** 2)
        q = np.sqrt((c - e) ** 2 + 0.5 * box_size ** 2)
        t = np.sqrt((d - e) ** 2 + 0.5 * box_size ** 2)

        def heron(side_1, side_2, side_3):
            s = (side_1 + side_2 + side_3) / 2
            return np.sqrt(np.clip(s * (s - side_1) * (s - side_2) * (s - side_3), 0, None))

        return np.sum(heron(w, p, o) + heron(x, p, q) + heron(y, q, t) + heron(z, o, t))

    def calc_log_log_slope(self, counts):
        if len(counts) < 2 or np.any(~np.isfinite(counts)) or np.any(counts <= 0):
            return np.nan
        slope, _ = np.polyfit(np.log(self.box_sizes), np.log(counts), 1)
        return slope

    def calc_fractal_dimensions(self):
        slope_bc = self.calc_log_log_slope(self.box_counts)
        slope_mbc = self.calc_log_log_slope(self.modified_box_counts)
        slope_tpsa = self.calc_log_log_slope(self.surface_areas)

        if np.isnan(slope_bc) or np.isnan(slope_mbc) or np.isnan(slope_tpsa):
            logger.warning(f'Degenerate fractal regression for a {self.image.shape} slice '
                           f'({len(self.box_counts)} usable scales).')

        self.box_counting_dim = 0.0 - slope_bc
        self.modified_box_counting_dim = 0.0 - slope_mbc
        self.tpsa_dim = 2 - slope_tpsa


FEATURE_FAMILIES = (HistogramFeatures, GTSDM, NGTDM, GLZSM, FractalFeatures)


def get_feature_names(families=FEATURE_FAMILIES):
    """Numbered feature names ``'(k) Category - Metric'`` in extraction order."""
    names = [name for family in families for name in family.feature_names()]
    return [f'({index}) {name}' for index, name in enumerate(names, start=1)]


def get_unit_format(families=FEATURE_FAMILIES):
    """Unit-format template of the combined vector; all texture families are dimensionless."""
    unit_formats = {family.UNIT_FORMAT for family in families}
    if len(unit_formats) == 1:
        return unit_formats.pop()
    return ''
