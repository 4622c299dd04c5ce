from .radiomics import Radiomics, FeatureVector, extract, extract_volume
from .radiomics_definitions import (FeatureFamily, FeatureDescriptor, FEATURE_REGISTRY, FEATURE_FAMILIES,
                                    HistogramFeatures, GTSDM, NGTDM, GLZSM, FractalFeatures, get_feature_names)
