"""Parameter definitions for resampling functions."""

from typing import Literal, Sequence, Union

import pandas as pd
from typing_extensions import Annotated, TypeAlias

from .resample_funcs import ResampleDistribution

nreps: TypeAlias = Annotated[
    int,
    "Number of resampling trials. Must be at least 1.",
]

nreps_default: nreps = 1000

nperm: TypeAlias = Annotated[
    int,
    "Number of label permutations used to build the null distribution.",
]

nperm_default: nperm = 999

mode: TypeAlias = Annotated[
    Literal["bootstrap", "permutation"],
    """
    Resampling rule. "bootstrap" draws samples (or loci) with replacement,
    each keeping its genotypes and stratum labels. "permutation" keeps
    genotypes fixed and shuffles the stratum labels across samples.
    """,
]

unit: TypeAlias = Annotated[
    Literal["samples", "loci"],
    """
    What to draw with replacement in bootstrap mode. Bootstrapping over loci
    is only available for global (not per-locus) results.
    """,
]

unit_default: unit = "samples"

strict: TypeAlias = Annotated[
    bool,
    """
    If True, raise an error when a bootstrap resample leaves a stratum
    with no members. Otherwise emit a warning and compute the statistic
    over the remaining strata, recording NaN when fewer than two remain.
    """,
]

alternative: TypeAlias = Annotated[
    Union[
        Literal["greater", "less", "two-sided"],
        Sequence[Literal["greater", "less", "two-sided"]],
    ],
    """
    Alternative hypothesis for the permutation test, either one value for
    all labels or one value per label.
    """,
]

distribution: TypeAlias = Annotated[
    ResampleDistribution,
    """
    Distribution of statistic values over resampling trials, together with
    the value observed on the original data.
    """,
]

df_summary: TypeAlias = Annotated[
    pd.DataFrame,
    """
    A dataframe with one row per label ("global" for scalar statistics) and
    columns "statistic", "label", "observed", "mean", "ci_low", "ci_upp"
    and "n" (number of valid trials).
    """,
]

df_permutation: TypeAlias = Annotated[
    pd.DataFrame,
    """
    A dataframe with one row per label and columns "statistic", "label",
    "observed", "null_mean", "p_value", "alternative" and "n" (number of
    valid permutations).
    """,
]
