import sys

from . import get
from . import preprocessing as pp
from . import tools as tl
from ._exceptions import (
    BiasDetectError,
    ComputationError,
    ConfigurationError,
    ShapeError,
    StatisticalDegeneracyWarning,
)
from ._utilities import set_env, tqdm_joblib

sys.modules.update({f"{__name__}.{m}": globals()[m] for m in ["tl", "pp"]})

__all__ = [
    "BiasDetectError",
    "ComputationError",
    "ConfigurationError",
    "ShapeError",
    "StatisticalDegeneracyWarning",
    "set_env",
    "tqdm_joblib",
    "pp",
    "tl",
    "get",
]
