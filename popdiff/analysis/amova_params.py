"""Parameters for AMOVA functions."""

from typing import Tuple

import pandas as pd
from typing_extensions import Annotated, TypeAlias

max_missing: TypeAlias = Annotated[
    float,
    """
    Loci where the fraction of samples with a missing genotype exceeds this
    value are excluded. Remaining missing calls are replaced by the mean
    allele dosage at the locus.
    """,
]

max_missing_default: max_missing = 0.05

amova_result: TypeAlias = Annotated[
    Tuple[pd.DataFrame, pd.Series],
    """
    A dataframe with one row per source of variation and columns "source",
    "df", "ssd", "msd", "sigma" and "percent", plus "p_value" if
    permutations were requested; and a series of Phi statistics.
    """,
]
