"""
Karnataka rainfall predictor.

Builds the District -> Taluk -> Hobli hierarchy from yearly rainfall tables,
predicts annual rainfall for a selected location, spreads it across the
months, and maps it to cropping recommendations.
"""

from .exceptions import NoDataError, NotReadyError, NoTrainingDataError, RainfallError
from .service import PredictionResult, RainfallService

__version__ = '1.0.0'
__all__ = [
    'RainfallService',
    'PredictionResult',
    'RainfallError',
    'NotReadyError',
    'NoDataError',
    'NoTrainingDataError',
]
