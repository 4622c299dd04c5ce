from .exceptions import (DataStructureError, DataStructureWarning, DegenerateIntensityRangeError, EmptyROIError,
                         InvalidInputParametersError, ShapeMismatchError)
from .image import Image, format_unit
from .radiomics import Radiomics, FeatureVector, extract, extract_volume, get_feature_names

__version__ = '0.1.0'
