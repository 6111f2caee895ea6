from typing import IO, Optional, Union

from .analysis.amova import PopDiffAmova
from .analysis.base import PopDiffBase
from .analysis.differentiation import PopDiffDifferentiation
from .analysis.diversity import PopDiffDiversity
from .analysis.genotype_data import PopDiffGenotypeData
from .analysis.resampling import PopDiffResampling


# N.B., we are making use of multiple inheritance here, using co-operative
# classes. Because of the way that multiple inheritance works in Python,
# it is important that these parent classes are provided in a particular
# order. Otherwise the linearization of parent classes will fail. For
# more information about superclass linearization and method resolution
# order in Python, the following links may be useful.
#
# https://en.wikipedia.org/wiki/C3_linearization
# https://rhettinger.wordpress.com/2011/05/26/super-considered-super/


class PopDiff(
    PopDiffDiversity,
    PopDiffAmova,
    PopDiffResampling,
    PopDiffDifferentiation,
    PopDiffGenotypeData,
    PopDiffBase,
):
    """Population differentiation analyses for multilocus genotype data.

    Parameters
    ----------
    log : str or stream, optional
        File path or stream output for logging messages.
    debug : bool, optional
        Set to True to enable debug level logging.
    show_progress : bool, optional
        If True, show progress bars and spinners for long running
        computations. If not provided, the POPDIFF_SHOW_PROGRESS environment
        variable is used, defaulting to True.
    results_cache : str, optional
        Path to a directory where resampling results can be cached.
    tqdm_class : optional
        Custom tqdm class for progress bars.

    Examples
    --------
    >>> import popdiff
    >>> pd_api = popdiff.PopDiff()
    >>> ds = pd_api.read_genotypes("genotypes.csv")
    >>> strata = pd_api.read_strata("strata.csv", ds=ds, active=["Country"])
    >>> pd_api.bootstrap_ci(ds, strata, statistic="Gst_Hedrick", nreps=1000)

    """

    def __init__(
        self,
        log: Optional[Union[str, IO]] = None,
        debug: bool = False,
        show_progress: Optional[bool] = None,
        results_cache: Optional[str] = None,
        tqdm_class=None,
    ):
        super().__init__(
            log=log,
            debug=debug,
            show_progress=show_progress,
            results_cache=results_cache,
            tqdm_class=tqdm_class,
        )

    def __repr__(self):
        text = (
            f"<PopDiff API client>\n"
            f"Results cache   : {self._results_cache}\n"
            f"Show progress   : {self._show_progress}\n"
        )
        return text
