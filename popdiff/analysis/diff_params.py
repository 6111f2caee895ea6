"""Parameter definitions for differentiation statistic functions."""

from typing import Union

import pandas as pd
from typing_extensions import Annotated, TypeAlias

from .stat_funcs import StatisticResult
from .statistic import Statistic

statistic: TypeAlias = Annotated[
    Union[Statistic, str],
    """
    Name of the statistic to compute. One of "Gst_Nei", "Gst_Hedrick",
    "D_Jost", "Fst_WC" (Weir & Cockerham's Fst, diploid data only) or
    "AMOVA" (variance components over the active stratification levels).
    """,
]

statistic_default: statistic = Statistic.GST_NEI

per_locus: TypeAlias = Annotated[
    bool,
    "If True, compute one value per locus rather than a global estimate.",
]

statistic_result: TypeAlias = Annotated[
    StatisticResult,
    """
    The statistic value, either a scalar or one value per locus (or per
    variance component for AMOVA).
    """,
]

df_diff_stats: TypeAlias = Annotated[
    pd.DataFrame,
    """
    A dataframe with one row per locus plus a final "global" row, and
    columns "Hs", "Ht", "Gst_Nei", "Gst_Hedrick" and "D_Jost".
    """,
]

df_pairwise: TypeAlias = Annotated[
    pd.DataFrame,
    """
    A dataframe with one row per pair of strata and columns "group1",
    "group2" and "value", plus "ci_low" and "ci_upp" when bootstrap
    replicates were requested.
    """,
]
