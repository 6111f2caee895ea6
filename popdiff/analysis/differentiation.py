from itertools import combinations

import numpy as np
import pandas as pd
from numpydoc_decorator import doc  # type: ignore

from ..util import DIM_SAMPLE, InvalidInput, check_types
from . import base_params, diff_params, resample_params
from .base import PopDiffBase
from .resample_funcs import resample_values
from .stat_funcs import (
    d_jost,
    group_allele_counts,
    gst_hedrick,
    gst_nei,
    heterozygosity_components,
)
from .statistic import Statistic
from .summary_funcs import summarize_distribution


class PopDiffDifferentiation(PopDiffBase):
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
            Compute a differentiation statistic between the strata defined by
            the active levels of a stratification scheme.
        """,
    )
    def compute_statistic(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
        statistic: diff_params.statistic = diff_params.statistic_default,
        per_locus: diff_params.per_locus = False,
    ) -> diff_params.statistic_result:
        stat = Statistic.parse(statistic)
        self._log.debug(f"compute {stat.value} over strata {strata.groups}")
        return stat.compute(ds, strata, per_locus=per_locus)

    @check_types
    @doc(
        summary="""
            Compute expected heterozygosity within strata (Hs) and in total
            (Ht), together with the heterozygosity-based differentiation
            statistics, for each locus and globally.
        """,
        notes="""
            Global values are computed from the mean of Hs and Ht over loci
            where both are defined.
        """,
    )
    def diff_stats(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
    ) -> diff_params.df_diff_stats:
        n_groups = len(strata.groups)
        if n_groups < 2:
            raise InvalidInput(
                f"At least two strata are required; found {list(strata.groups)}."
            )
        ac = group_allele_counts(ds, strata)
        h = heterozygosity_components(ac)
        hs, ht = h["hs"], h["ht"]
        k = h["k"].astype("f8")

        loc_ok = np.isfinite(hs) & np.isfinite(ht)
        if np.any(loc_ok):
            hs_global, ht_global = hs[loc_ok].mean(), ht[loc_ok].mean()
        else:
            hs_global, ht_global = np.nan, np.nan

        hs_all = np.append(hs, hs_global)
        ht_all = np.append(ht, ht_global)
        k_all = np.append(k, float(n_groups))
        index = list(ds["locus_id"].values.astype(str)) + ["global"]
        df = pd.DataFrame(
            {
                "Hs": hs_all,
                "Ht": ht_all,
                "Gst_Nei": gst_nei(hs_all, ht_all),
                "Gst_Hedrick": gst_hedrick(hs_all, ht_all, k_all),
                "D_Jost": d_jost(hs_all, ht_all, k_all),
            },
            index=pd.Index(index, name="locus"),
        )
        return df

    @check_types
    @doc(
        summary="""
            Compute a differentiation statistic between every pair of strata,
            optionally with a bootstrap confidence interval.
        """,
        parameters=dict(
            nreps="""
                Number of bootstrap resamples of samples within each pair. If
                0, no confidence interval is computed.
            """,
        ),
    )
    def pairwise_differentiation(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
        statistic: diff_params.statistic = diff_params.statistic_default,
        nreps: resample_params.nreps = 0,
        confidence_level: base_params.confidence_level = base_params.confidence_level_default,
        random_seed: base_params.random_seed = 42,
        n_jobs: base_params.n_jobs = base_params.n_jobs_default,
    ) -> diff_params.df_pairwise:
        stat = Statistic.parse(statistic)
        if stat is Statistic.AMOVA:
            raise InvalidInput("AMOVA has no single pairwise value.")
        if nreps < 0:
            raise InvalidInput(f"Number of resamples must not be negative; found {nreps}.")
        if len(strata.groups) < 2:
            raise InvalidInput(
                f"At least two strata are required; found {list(strata.groups)}."
            )

        indices = strata.group_indices()
        group1_ids = []
        group2_ids = []
        values = []
        ci_low = []
        ci_upp = []
        pairs = list(combinations(strata.groups, 2))
        for group1, group2 in self._progress(pairs, desc=f"Pairwise {stat.value}"):
            idx = np.concatenate([indices[group1], indices[group2]])
            ds_pair = ds.isel({DIM_SAMPLE: idx})
            strata_pair = strata.take(idx)
            if nreps > 0:
                dist = resample_values(
                    ds_pair,
                    strata_pair,
                    stat,
                    nreps=nreps,
                    mode="bootstrap",
                    random_seed=random_seed,
                    n_jobs=n_jobs,
                )
                summary = summarize_distribution(dist, confidence_level=confidence_level)
                values.append(float(dist.observed))
                ci_low.append(summary["ci_low"].iloc[0])
                ci_upp.append(summary["ci_upp"].iloc[0])
            else:
                values.append(float(stat.compute(ds_pair, strata_pair)))
            group1_ids.append(group1)
            group2_ids.append(group2)

        df = pd.DataFrame(
            {
                "group1": group1_ids,
                "group2": group2_ids,
                "value": values,
            }
        )
        if nreps > 0:
            df["ci_low"] = ci_low
            df["ci_upp"] = ci_upp
        return df
