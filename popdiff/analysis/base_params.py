"""General parameters common to many functions in the public API."""

from typing import Optional, Sequence, Union

import xarray as xr
from typing_extensions import Annotated, TypeAlias

from .strata import StratificationScheme

ds: TypeAlias = Annotated[
    xr.Dataset,
    """
    Genotype dataset, as returned by `read_genotypes()` or
    `read_sequences()`, with variables "sample_id", "locus_id",
    "locus_allele" and "call_genotype".
    """,
]

strata: TypeAlias = Annotated[
    StratificationScheme,
    """
    Stratification of the samples in the dataset, as returned by
    `read_strata()`. The active levels determine the grouping.
    """,
]

levels: TypeAlias = Annotated[
    Union[str, Sequence[str]],
    """
    One or more stratification levels (column names of the strata table),
    ordered from outer to inner.
    """,
]

path: TypeAlias = Annotated[
    str,
    "Path to a local file.",
]

sample_column: TypeAlias = Annotated[
    Optional[str],
    """
    Name of the column holding sample identifiers. If not provided, the
    first column is used.
    """,
]

random_seed: TypeAlias = Annotated[
    int,
    """
    Random seed, consumed once at the start of the run. Re-running with
    the same seed and inputs gives identical results.
    """,
]

confidence_level: TypeAlias = Annotated[
    float,
    """
    Confidence level to use for confidence interval calculation. E.g., 0.95
    means 95% confidence interval.
    """,
]

confidence_level_default: confidence_level = 0.95

n_jobs: TypeAlias = Annotated[
    int,
    """
    Number of worker threads used to run resampling trials. Results do not
    depend on this value.
    """,
]

n_jobs_default: n_jobs = 1
