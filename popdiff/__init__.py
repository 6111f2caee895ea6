# flake8: noqa
from .analysis.resample_funcs import ResampleDistribution
from .analysis.stat_funcs import StatisticResult
from .analysis.statistic import Statistic
from .analysis.strata import StratificationScheme
from .popdiff import PopDiff
from .util import DegenerateResample, DegenerateResampleWarning, InvalidInput

try:
    import importlib.metadata as importlib_metadata
except ModuleNotFoundError:
    import importlib_metadata  # type: ignore

# this will read version from pyproject.toml
__version__ = importlib_metadata.version(__name__)
