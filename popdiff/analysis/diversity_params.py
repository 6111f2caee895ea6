"""Parameters for diversity and Hardy-Weinberg functions."""

import pandas as pd
from typing_extensions import Annotated, TypeAlias

nsim: TypeAlias = Annotated[
    int,
    """
    Number of Monte Carlo simulations, each shuffling gene copies among the
    genotyped samples of a stratum. If 0, only the asymptotic chi-square
    p-value is reported.
    """,
]

df_diversity: TypeAlias = Annotated[
    pd.DataFrame,
    """
    A dataframe with one row per stratum and locus, and columns "stratum",
    "locus", "n" (genotyped samples), "n_alleles" (observed alleles), "ho"
    (observed heterozygosity) and "he" (expected heterozygosity).
    """,
]

df_hwe: TypeAlias = Annotated[
    pd.DataFrame,
    """
    A dataframe with one row per stratum and locus, and columns "stratum",
    "locus", "n", "n_alleles", "chi2", "df" and "p_value", plus
    "p_value_mc" if Monte Carlo simulations were requested.
    """,
]
