import warnings
from typing import Optional

import numpy as np
from numpydoc_decorator import doc  # type: ignore

from ..util import (
    CacheMiss,
    DegenerateResampleWarning,
    check_types,
    hash_dataset,
)
from . import base_params, diff_params, resample_params
from .amova_funcs import component_alternatives
from .base import PopDiffBase
from .resample_funcs import ResampleDistribution, resample_values
from .statistic import Statistic
from .summary_funcs import permutation_pvalues, summarize_distribution


class PopDiffResampling(PopDiffBase):
    def __init__(
        self,
        **kwargs,
    ):
        # N.B., this class is designed to work cooperatively, and
        # so it's important that any remaining parameters are passed
        # to the superclass constructor.
        super().__init__(**kwargs)

    def _resample_statistic(
        self,
        *,
        ds,
        strata,
        statistic,
        nreps,
        mode,
        unit,
        per_locus,
        strict,
        random_seed,
        n_jobs,
    ):
        dist = resample_values(
            ds,
            strata,
            statistic,
            nreps=nreps,
            mode=mode,
            unit=unit,
            per_locus=per_locus,
            strict=strict,
            random_seed=random_seed,
            n_jobs=n_jobs,
            progress=lambda seeds: self._progress(
                seeds, desc=f"Resample {statistic.value}"
            ),
        )
        return dist

    @check_types
    @doc(
        summary="""
            Run a bootstrap or permutation resampling of a differentiation
            statistic and return the distribution of trial values.
        """,
        extended_summary="""
            Randomness is consumed from a single seed at the start of the
            run. Each trial draws from its own child seed stream, so results
            are identical whatever the number of jobs.
        """,
        notes="""
            If a bootstrap resample leaves a stratum with no members, a
            warning is emitted and the statistic is computed over the
            remaining strata, or recorded as NaN if fewer than two remain.
        """,
    )
    def resample_statistic(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
        statistic: diff_params.statistic = diff_params.statistic_default,
        nreps: resample_params.nreps = resample_params.nreps_default,
        mode: resample_params.mode = "bootstrap",
        unit: resample_params.unit = resample_params.unit_default,
        per_locus: diff_params.per_locus = False,
        strict: resample_params.strict = False,
        random_seed: base_params.random_seed = 42,
        n_jobs: base_params.n_jobs = base_params.n_jobs_default,
    ) -> resample_params.distribution:
        stat = Statistic.parse(statistic)

        # Change this name if you ever change the behaviour of this function, to
        # invalidate any previously cached data.
        name = "resample_statistic_v1"

        # N.B., n_jobs does not affect results so is not part of the cache key.
        params = dict(
            dataset=hash_dataset(ds),
            strata=strata.hash(),
            statistic=stat.value,
            nreps=nreps,
            mode=mode,
            unit=unit,
            per_locus=per_locus,
            strict=strict,
            random_seed=random_seed,
        )

        try:
            results = self.results_cache_get(name=name, params=params)
            observed = stat.compute(ds, strata, per_locus=per_locus)
            dist = ResampleDistribution(
                statistic=stat.value,
                mode=mode,
                unit=unit,
                random_seed=random_seed,
                observed=observed,
                values=results["values"],
            )
            # Only sample bootstraps can leave strata with no members.
            loc_nan = np.all(np.isnan(dist.values.reshape(nreps, -1)), axis=1)
            n_degenerate = int(np.sum(loc_nan))
            if mode == "bootstrap" and unit == "samples" and n_degenerate > 0:
                warnings.warn(
                    f"Cached distribution has {n_degenerate} of {nreps} trials with no value, "
                    "from resamples which left strata with no members.",
                    DegenerateResampleWarning,
                    stacklevel=2,
                )
            return dist

        except CacheMiss:
            with self._dask_progress(desc=f"Resample {stat.value}"):
                dist = self._resample_statistic(
                    ds=ds,
                    strata=strata,
                    statistic=stat,
                    nreps=nreps,
                    mode=mode,
                    unit=unit,
                    per_locus=per_locus,
                    strict=strict,
                    random_seed=random_seed,
                    n_jobs=n_jobs,
                )
            self.results_cache_set(
                name=name, params=params, results=dict(values=dist.values)
            )
            return dist

    @check_types
    @doc(
        summary="""
            Estimate a bootstrap percentile confidence interval for a
            differentiation statistic.
        """,
    )
    def bootstrap_ci(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
        statistic: diff_params.statistic = diff_params.statistic_default,
        nreps: resample_params.nreps = resample_params.nreps_default,
        unit: resample_params.unit = resample_params.unit_default,
        per_locus: diff_params.per_locus = False,
        confidence_level: base_params.confidence_level = base_params.confidence_level_default,
        strict: resample_params.strict = False,
        random_seed: base_params.random_seed = 42,
        n_jobs: base_params.n_jobs = base_params.n_jobs_default,
    ) -> resample_params.df_summary:
        dist = self.resample_statistic(
            ds=ds,
            strata=strata,
            statistic=statistic,
            nreps=nreps,
            mode="bootstrap",
            unit=unit,
            per_locus=per_locus,
            strict=strict,
            random_seed=random_seed,
            n_jobs=n_jobs,
        )
        return summarize_distribution(dist, confidence_level=confidence_level)

    @check_types
    @doc(
        summary="""
            Test whether a differentiation statistic is larger (or smaller)
            than expected if samples were assigned to strata at random.
        """,
        extended_summary="""
            The null distribution is built by shuffling stratum labels
            across samples, genotypes fixed. P-values use the (1 + hits) /
            (1 + n) estimator, where n is the number of valid permutations.
        """,
        parameters=dict(
            alternative="""
                Alternative hypothesis, either one value for all labels or one
                value per label. If not provided, "greater" is used, except for
                AMOVA where within-strata components are tested with "less".
            """,
        ),
    )
    def permutation_test(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
        statistic: diff_params.statistic = diff_params.statistic_default,
        nperm: resample_params.nperm = resample_params.nperm_default,
        per_locus: diff_params.per_locus = False,
        alternative: Optional[resample_params.alternative] = None,
        random_seed: base_params.random_seed = 42,
        n_jobs: base_params.n_jobs = base_params.n_jobs_default,
    ) -> resample_params.df_permutation:
        dist = self.resample_statistic(
            ds=ds,
            strata=strata,
            statistic=statistic,
            nreps=nperm,
            mode="permutation",
            per_locus=per_locus,
            random_seed=random_seed,
            n_jobs=n_jobs,
        )
        if alternative is None:
            if dist.statistic == Statistic.AMOVA.value:
                alternative = component_alternatives(dist.labels)
            else:
                alternative = "greater"
        return permutation_pvalues(dist, alternative=alternative)
