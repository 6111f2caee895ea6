import warnings
from dataclasses import dataclass
from functools import partial
from typing import Dict, List, Tuple

import dask
import numpy as np
import xarray as xr

from ..util import (
    DIM_LOCUS,
    DIM_SAMPLE,
    DegenerateResample,
    DegenerateResampleWarning,
    InvalidInput,
    value_error,
)
from .stat_funcs import StatisticResult
from .statistic import Statistic
from .strata import StratificationScheme, check_aligned

RESAMPLE_MODES = ("bootstrap", "permutation")
BOOTSTRAP_UNITS = ("samples", "loci")


@dataclass(frozen=True)
class ResampleDistribution:
    """Values of a statistic computed for each resampling trial, together
    with the value observed on the original data."""

    statistic: str
    mode: str
    unit: str
    random_seed: int
    observed: StatisticResult
    values: np.ndarray

    def __post_init__(self):
        values = np.array(self.values, dtype="f8")
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

    def __len__(self):
        return self.values.shape[0]

    @property
    def labels(self):
        return self.observed.labels


def bootstrap_resample(
    ds: xr.Dataset,
    strata: StratificationScheme,
    rng: np.random.Generator,
    unit: str = "samples",
) -> Tuple[xr.Dataset, StratificationScheme]:
    """Draw samples (or loci) with replacement. Each drawn sample keeps its
    genotypes and its stratum labels."""
    if unit == "samples":
        n = ds.sizes[DIM_SAMPLE]
        idx = rng.integers(0, n, size=n)
        return ds.isel({DIM_SAMPLE: idx}), strata.take(idx)
    elif unit == "loci":
        n = ds.sizes[DIM_LOCUS]
        idx = rng.integers(0, n, size=n)
        return ds.isel({DIM_LOCUS: idx}), strata
    else:
        raise InvalidInput(f"Unknown bootstrap unit {unit!r}; expected one of {BOOTSTRAP_UNITS}.")


def permutation_resample(
    ds: xr.Dataset,
    strata: StratificationScheme,
    rng: np.random.Generator,
) -> Tuple[xr.Dataset, StratificationScheme]:
    """Shuffle stratum assignments across samples, genotypes unchanged."""
    return ds, strata.permute(rng)


def check_resample_params(
    ds: xr.Dataset,
    strata: StratificationScheme,
    *,
    nreps: int,
    mode: str,
    unit: str,
    per_locus: bool,
):
    if nreps < 1:
        raise InvalidInput(f"Number of trials must be at least 1; found {nreps}.")
    if mode not in RESAMPLE_MODES:
        raise InvalidInput(f"Unknown resampling mode {mode!r}; expected one of {RESAMPLE_MODES}.")
    if unit not in BOOTSTRAP_UNITS:
        raise InvalidInput(f"Unknown bootstrap unit {unit!r}; expected one of {BOOTSTRAP_UNITS}.")
    if ds.sizes[DIM_SAMPLE] < 2:
        raise InvalidInput(
            f"At least two samples are required; found {ds.sizes[DIM_SAMPLE]}."
        )
    check_aligned(ds, strata)
    if mode == "bootstrap" and unit == "loci" and per_locus:
        raise InvalidInput("Per-locus results cannot be bootstrapped over loci.")


def trial_seeds(random_seed: int, nreps: int) -> List[np.random.SeedSequence]:
    """Derive one independent seed sequence per trial from a single seed."""
    return np.random.SeedSequence(random_seed).spawn(nreps)


def lost_strata(
    strata: StratificationScheme, strata_r: StratificationScheme
) -> Dict[str, List[str]]:
    """Labels of each active level which have no members after resampling."""
    lost = {}
    for level in strata.active:
        before = set(strata.level_labels(level))
        after = set(strata_r.level_labels(level))
        if before - after:
            lost[level] = sorted(before - after)
    return lost


def run_trial(
    ds: xr.Dataset,
    strata: StratificationScheme,
    statistic: Statistic,
    seed: np.random.SeedSequence,
    *,
    mode: str,
    unit: str,
    per_locus: bool,
    strict: bool,
    shape: Tuple[int, ...],
) -> np.ndarray:
    rng = np.random.default_rng(seed)
    if mode == "bootstrap":
        ds_r, strata_r = bootstrap_resample(ds, strata, rng, unit=unit)
    else:
        ds_r, strata_r = permutation_resample(ds, strata, rng)

    lost = lost_strata(strata, strata_r)
    if not lost:
        result = statistic.compute(ds_r, strata_r, per_locus=per_locus)
        return result.values

    message = f"Resampled data has no members for strata {lost}."
    if strict:
        raise DegenerateResample(message)
    warnings.warn(message, DegenerateResampleWarning, stacklevel=2)
    if len(strata_r.groups) < 2:
        return np.full(shape, np.nan)
    try:
        result = statistic.compute(ds_r, strata_r, per_locus=per_locus)
    except InvalidInput:
        # Remaining strata do not support the statistic, e.g., two-level
        # AMOVA with a single outer stratum left.
        return np.full(shape, np.nan)
    return result.values


def resample_values(
    ds: xr.Dataset,
    strata: StratificationScheme,
    statistic: Statistic,
    *,
    nreps: int,
    mode: str = "bootstrap",
    unit: str = "samples",
    per_locus: bool = False,
    strict: bool = False,
    random_seed: int = 42,
    n_jobs: int = 1,
    progress=None,
) -> ResampleDistribution:
    """Run `nreps` resampling trials and collect the distribution.

    Trials run in order in the calling thread when `n_jobs` is 1, otherwise
    as dask tasks on a pool of `n_jobs` threads. Each trial draws from its
    own seed sequence, so the result does not depend on `n_jobs`.
    `progress` optionally wraps the serial iterable of trial seeds.

    """
    check_resample_params(
        ds, strata, nreps=nreps, mode=mode, unit=unit, per_locus=per_locus
    )
    if n_jobs < 1:
        value_error("n_jobs", n_jobs, "an integer of at least 1")
    observed = statistic.compute(ds, strata, per_locus=per_locus)
    trial = partial(
        run_trial,
        ds,
        strata,
        statistic,
        mode=mode,
        unit=unit,
        per_locus=per_locus,
        strict=strict,
        shape=observed.values.shape,
    )
    seeds = trial_seeds(random_seed, nreps)

    if n_jobs == 1:
        if progress is not None:
            seeds = progress(seeds)
        values = [trial(seed) for seed in seeds]
    else:
        tasks = [dask.delayed(trial, pure=False)(seed) for seed in seeds]
        values = list(
            dask.compute(*tasks, scheduler="threads", num_workers=n_jobs)
        )

    return ResampleDistribution(
        statistic=statistic.value,
        mode=mode,
        unit=unit,
        random_seed=random_seed,
        observed=observed,
        values=np.stack(values),
    )
