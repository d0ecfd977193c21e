from .forel_ule import ColorClassTable, dominant_wavelength
from .matchups import MalformedInputError, load_matchups, validate_matchups
from .processors import FeatureBuilder

__all__ = [
    "ColorClassTable",
    "dominant_wavelength",
    "MalformedInputError",
    "load_matchups",
    "validate_matchups",
    "FeatureBuilder",
]
