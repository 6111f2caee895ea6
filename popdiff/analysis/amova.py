from typing import Optional

import pandas as pd
from numpydoc_decorator import doc  # type: ignore

from ..util import InvalidInput, check_types
from . import amova_params, base_params, resample_params
from .amova_funcs import (
    component_alternatives,
    permute_variance_components,
    squared_distances,
    variance_components,
)
from .base import PopDiffBase
from .resample_funcs import ResampleDistribution
from .stat_funcs import StatisticResult
from .strata import check_aligned
from .summary_funcs import permutation_pvalues


class PopDiffAmova(PopDiffBase):
    def __init__(
        self,
        **kwargs,
    ):
        # N.B., this class is designed to work cooperatively, and
        # so it's important that any remaining parameters are passed
        # to the superclass constructor.
        super().__init__(**kwargs)

    @check_types
    @doc(
        summary="""
            Run an analysis of molecular variance (AMOVA) over one or two
            nested stratification levels.
        """,
        extended_summary="""
            Genetic distance between samples is the squared Euclidean distance
            between their allele dosage vectors. Variance components follow
            Excoffier, Smouse & Quattro (1992).
        """,
        parameters=dict(
            levels="""
                One or two stratification levels, ordered from outer to inner.
                If not provided, the active levels of `strata` are used.
            """,
            nperm="""
                Number of permutations used to test each variance component.
                If 0, no test is performed. Whole strata rows are shuffled
                across samples, so nesting between levels is kept.
            """,
        ),
        notes="""
            Between-strata components are tested for being larger than
            expected under random assignment, within-strata components for
            being smaller.
        """,
    )
    def amova(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
        levels: Optional[base_params.levels] = None,
        nperm: resample_params.nperm = 0,
        max_missing: amova_params.max_missing = amova_params.max_missing_default,
        random_seed: base_params.random_seed = 42,
        n_jobs: base_params.n_jobs = base_params.n_jobs_default,
    ) -> amova_params.amova_result:
        if nperm < 0:
            raise InvalidInput(f"Number of permutations must not be negative; found {nperm}.")
        if levels is not None:
            strata = strata.set_active(levels)
        check_aligned(ds, strata)

        with self._spinner(desc="Compute genetic distances"):
            d2 = squared_distances(ds, max_missing=max_missing)
        df_amova, phi = variance_components(d2, strata)
        self._log.debug(f"AMOVA over levels {list(strata.active)}")

        if nperm > 0:
            sigma = permute_variance_components(
                d2,
                strata,
                nperm=nperm,
                random_seed=random_seed,
                n_jobs=n_jobs,
                progress=lambda seeds: self._progress(seeds, desc="Permute AMOVA"),
            )
            sources = tuple(df_amova["source"])
            dist = ResampleDistribution(
                statistic="AMOVA",
                mode="permutation",
                unit="samples",
                random_seed=random_seed,
                observed=StatisticResult(
                    name="AMOVA",
                    values=df_amova["sigma"].to_numpy(),
                    labels=sources,
                ),
                values=sigma,
            )
            df_pval = permutation_pvalues(
                dist, alternative=component_alternatives(sources)
            )
            df_amova["p_value"] = df_pval["p_value"].to_numpy()

        return df_amova, pd.Series(phi, name="phi")
