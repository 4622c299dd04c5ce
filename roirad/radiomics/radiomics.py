import logging
import sys
from collections import namedtuple
from collections.abc import Mapping
from datetime import datetime

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from .radiomics_definitions import (HistogramFeatures, GTSDM, NGTDM, GLZSM, FractalFeatures, FEATURE_FAMILIES,
                                    get_feature_names, get_unit_format)
from ..exceptions import DataStructureError, EmptyROIError, InvalidInputParametersError, ShapeMismatchError
from ..image import as_array
from ..preprocessing import Discretization, analyze_roi_connectivity, prepare_fractal_slice
from ..settings import DEFAULT_NUMBER_OF_BINS, DEFAULT_VOLUME_NUMBER_OF_BINS
from ..toolbox_logic import handle_uncaught_exception, validate_image_and_mask, get_logger, tqdm_joblib

sys.excepthook = handle_uncaught_exception

logger = logging.getLogger(__name__)

FeatureVector = namedtuple('FeatureVector', ['values', 'names', 'unit_format'])


class Radiomics:
    """
    Texture radiomics of a single ROI: histogram, GTSDM, NGTDM, GLZSM and fractal features.

    After ``extract_features`` the instance keeps the intermediate products of the last run
    (``connectivity_``, ``discretized_image_``, the feature family objects) for inspection.
    """

    def __init__(self, number_of_bins=DEFAULT_NUMBER_OF_BINS, intensity_range_policy='collapse',
                 calc_fractal_features=True, number_of_threads=1, average_populated_directions=False):
        self.discretization = Discretization(number_of_bins, intensity_range_policy)
        self.number_of_bins = self.discretization.number_of_bins
        self.intensity_range_policy = intensity_range_policy
        self.calc_fractal_features = calc_fractal_features

        if (isinstance(number_of_threads, bool) or not isinstance(number_of_threads, (int, np.integer))
                or (number_of_threads < 1 and number_of_threads != -1)):
            raise InvalidInputParametersError(f'Number of threads {number_of_threads} must be a positive int or -1.')
        self.number_of_threads = int(number_of_threads)

        if not isinstance(average_populated_directions, bool):
            raise InvalidInputParametersError(f'Average populated directions {average_populated_directions} '
                                              'must be a bool.')
        self.average_populated_directions = average_populated_directions

        self.feature_names_ = get_feature_names(FEATURE_FAMILIES)
        self.unit_format_ = get_unit_format(FEATURE_FAMILIES)

        self.connectivity_ = None
        self.discretized_image_ = None
        self.histogram_ = None
        self.gtsdm_ = None
        self.ngtdm_ = None
        self.glzsm_ = None
        self.fractal_ = None
        self.feature_values_ = None
        self.features_ = None

    def extract_features(self, image, mask):
        """
        Computes the 45 features of the ROI ``mask`` in ``image``.

        Parameters:
        image (Image | np.ndarray): 2D or 3D intensity volume.
        mask (Image | np.ndarray): ROI of the same shape, nonzero inside.

        Returns:
        FeatureVector: Values, numbered names and the unit-format template.
        """
        image_array, mask_array = validate_image_and_mask(as_array(image), as_array(mask))
        return self._extract(image_array, mask_array)

    def extract_volume_features(self, image):
        """
        Whole-volume mode: the ROI is the volume without its six outer faces.

        The face voxels only serve as neighbours of the GTSDM and NGTDM and take part in the
        discretisation range.
        """
        image_array = np.asarray(as_array(image), dtype=np.float64)
        if image_array.ndim == 2:
            image_array = image_array[:, :, np.newaxis]
        if image_array.ndim != 3:
            raise ShapeMismatchError(f"Expected a 2D or 3D array, got {image_array.ndim} dimensions.")
        if min(image_array.shape) < 3:
            raise EmptyROIError(f"Volume of shape {image_array.shape} has no interior voxels.")

        interior = np.zeros(image_array.shape, dtype=bool)
        interior[1:-1, 1:-1, 1:-1] = True
        support = np.ones(image_array.shape, dtype=bool)

        return self._extract(image_array, interior, support)

    def _extract(self, image_array, mask_array, support_mask=None):
        self.connectivity_ = analyze_roi_connectivity(mask_array, support_mask)
        roi = self.connectivity_.roi
        self.discretized_image_ = self.discretization.discretize(self.connectivity_.crop(image_array), roi,
                                                                 self.connectivity_.support)

        self.histogram_ = HistogramFeatures(self.discretized_image_, roi, self.number_of_bins)
        self.histogram_.calc_histogram()
        self.histogram_.calc_histogram_features()

        self.gtsdm_ = GTSDM(self.discretized_image_, self.connectivity_, self.number_of_bins,
                            self.average_populated_directions)
        self.gtsdm_.calc_gtsdm_3d_matrix()
        self.gtsdm_.calc_3d_averaged_gtsdm_features()

        self.ngtdm_ = NGTDM(self.discretized_image_, self.connectivity_, self.number_of_bins)
        self.ngtdm_.calc_ngtd_3d_matrix()
        self.ngtdm_.calc_3d_ngtdm_features()

        self.glzsm_ = GLZSM(self.discretized_image_, roi, self.number_of_bins)
        self.glzsm_.calc_glzs_3d_matrix()
        self.glzsm_.calc_3d_glzsm_features()

        # The fractal slice is cropped from the raw image, independently of the texture sub-volume.
        self.fractal_ = FractalFeatures(prepare_fractal_slice(image_array, mask_array))
        if self.calc_fractal_features:
            self.fractal_.calc_box_counts()
            self.fractal_.calc_fractal_dimensions()

        all_features_list = [self.histogram_.feature_values(), self.gtsdm_.feature_values(),
                             self.ngtdm_.feature_values(), self.glzsm_.feature_values(),
                             self.fractal_.feature_values()]
        self.feature_values_ = [float(value) for sublist in all_features_list for value in sublist]
        self.features_ = dict(zip(self.feature_names_, self.feature_values_))

        logger.info(f"Extracted {len(self.feature_values_)} features from {self.connectivity_.no_of_roi_voxels} "
                    f"ROI voxels with {self.number_of_bins} gray levels.")

        return FeatureVector(list(self.feature_values_), list(self.feature_names_), self.unit_format_)

    def extract_batch(self, cases, show_progress=False):
        """
        Extracts the features of many ROIs in parallel.

        Parameters:
        cases (Mapping | Iterable): ``case_id -> (image, mask)`` or ``(case_id, image, mask)`` triples.
            A mask of None selects the whole-volume mode for that case.
        show_progress (bool): Report progress through a tqdm bar.

        Returns:
        pd.DataFrame: One row per successfully processed case, indexed by case id, with the
        numbered feature names as columns. Cases with invalid data are logged and skipped.
        """
        if isinstance(cases, Mapping):
            cases = [(case_id, image, mask) for case_id, (image, mask) in cases.items()]
        else:
            cases = list(cases)

        batch_logger = get_logger(datetime.now().strftime("%Y-%m-%d_%H%M%S") + '_Radiomics')
        batch_logger.info(f"Processing {len(cases)} cases with {self.number_of_threads} threads.")

        jobs = (delayed(process_case)(self, case_id, image, mask) for case_id, image, mask in cases)
        if show_progress:
            with tqdm_joblib(tqdm(desc='Radiomics', total=len(cases))):
                results = Parallel(n_jobs=self.number_of_threads)(jobs)
        else:
            results = Parallel(n_jobs=self.number_of_threads)(jobs)

        rows = [[case_id] + values for case_id, values in results if values is not None]
        radiomic_features_df = pd.DataFrame(rows, columns=['case_id'] + self.feature_names_)
        radiomic_features_df.set_index('case_id', inplace=True)

        batch_logger.info(f"Radiomics finished for {len(rows)} of {len(cases)} cases.")
        return radiomic_features_df


def process_case(radiomics_instance, case_id, image, mask):
    """Worker of ``Radiomics.extract_batch``; returns (case_id, values) or (case_id, None)."""
    logger.info(f"Processing case: {case_id}.")
    try:
        if mask is None:
            feature_vector = radiomics_instance.extract_volume_features(image)
        else:
            feature_vector = radiomics_instance.extract_features(image, mask)
    except DataStructureError as e:
        logger.error(f"Case {case_id} skipped: {e}")
        return case_id, None

    return case_id, feature_vector.values


def extract(volume, mask, number_of_bins=DEFAULT_NUMBER_OF_BINS):
    """Features of one ROI with the single-ROI defaults."""
    return Radiomics(number_of_bins=number_of_bins).extract_features(volume, mask)


def extract_volume(volume, number_of_bins=DEFAULT_VOLUME_NUMBER_OF_BINS):
    """Features of the interior of a whole volume with the batch defaults."""
    return Radiomics(number_of_bins=number_of_bins).extract_volume_features(volume)
