from typing import Dict, List, Tuple

import dask
import numba  # type: ignore
import numpy as np
import pandas as pd
import xarray as xr
from scipy.spatial.distance import pdist, squareform  # type: ignore

from ..util import DIM_ALLELE, InvalidInput
from .stat_funcs import StatisticResult
from .strata import StratificationScheme, check_aligned


def genotype_dosages(ds: xr.Dataset, max_missing: float = 0.05) -> np.ndarray:
    """Allele dosage matrix, one row per sample and one column per
    (locus, allele).

    Loci where the fraction of samples with missing calls exceeds
    `max_missing` are dropped. Remaining missing calls are replaced by the
    mean dosage at that locus.

    """
    gt = ds["call_genotype"].values
    n_alleles = ds.sizes[DIM_ALLELE]
    missing = np.any(gt < 0, axis=2)
    loc_keep = missing.mean(axis=0) <= max_missing
    if not np.any(loc_keep):
        raise InvalidInput(
            f"No loci with a missing fraction at or below {max_missing}."
        )
    gt = gt[:, loc_keep]
    missing = missing[:, loc_keep]

    counts = np.stack(
        [np.sum(gt == a, axis=2) for a in range(n_alleles)], axis=2
    ).astype("f8")
    if np.any(missing):
        masked = np.where(missing[:, :, None], np.nan, counts)
        with np.errstate(invalid="ignore"):
            means = np.nanmean(masked, axis=0)
        counts = np.where(missing[:, :, None], means[None, :, :], counts)
    return counts.reshape(counts.shape[0], -1)


def squared_distances(ds: xr.Dataset, max_missing: float = 0.05) -> np.ndarray:
    x = genotype_dosages(ds, max_missing=max_missing)
    return squareform(pdist(x, metric="sqeuclidean"))


@numba.njit
def _group_ssd(d2, codes, n_groups):
    # Sum of squared deviations within each group, i.e., the sum over
    # pairs of squared distances divided by the group size.
    ssd = np.zeros(n_groups, dtype=np.float64)
    size = np.zeros(n_groups, dtype=np.int64)
    n = codes.shape[0]
    for i in range(n):
        gi = codes[i]
        size[gi] += 1
        for j in range(i + 1, n):
            if codes[j] == gi:
                ssd[gi] += d2[i, j]
    for g in range(n_groups):
        if size[g] > 0:
            ssd[g] /= size[g]
    return ssd, size


def _codes(labels: np.ndarray) -> Tuple[np.ndarray, int]:
    uniques, codes = np.unique(labels, return_inverse=True)
    return codes.astype(np.int64), len(uniques)


def variance_components(
    d2: np.ndarray, strata: StratificationScheme
) -> Tuple[pd.DataFrame, Dict[str, float]]:
    """Hierarchical AMOVA over the active levels of `strata`, following
    Excoffier, Smouse & Quattro (1992). One or two levels are supported.

    Returns
    -------
    df_amova : pandas.DataFrame
        One row per source of variation with columns "source", "df",
        "ssd", "msd", "sigma" and "percent".
    phi : dict
        Phi statistics.

    """
    levels = strata.active
    n = d2.shape[0]
    if len(strata) != n:
        raise InvalidInput(
            f"Stratification has {len(strata)} samples but distance matrix has {n}."
        )
    ssd_total = _group_ssd(d2, np.zeros(n, dtype=np.int64), 1)[0][0]
    pop_codes = np.asarray(strata.codes, dtype=np.int64)
    n_pops = len(strata.groups)
    ssd_pops, pop_sizes = _group_ssd(d2, pop_codes, n_pops)
    ssd_wp = ssd_pops.sum()

    if len(levels) == 1:
        (level,) = levels
        if n_pops < 2 or n <= n_pops:
            raise InvalidInput(
                f"AMOVA needs at least two strata and more samples than strata; "
                f"found {n_pops} strata and {n} samples."
            )
        df_ap, df_wp = n_pops - 1, n - n_pops
        ssd_ap = ssd_total - ssd_wp
        msd_ap, msd_wp = ssd_ap / df_ap, ssd_wp / df_wp
        n0 = (n - np.sum(pop_sizes**2) / n) / df_ap
        sigma_wp = msd_wp
        sigma_ap = (msd_ap - msd_wp) / n0
        sources = [f"between_{level}", f"within_{level}"]
        dfs = [df_ap, df_wp]
        ssds = [ssd_ap, ssd_wp]
        msds = [msd_ap, msd_wp]
        sigmas = [sigma_ap, sigma_wp]
        total = sigma_ap + sigma_wp
        phi = {f"Phi_{level}_total": sigma_ap / total}

    elif len(levels) == 2:
        outer, inner = levels
        group_codes, n_groups = _codes(strata.level_labels(outer))
        if n_groups < 2 or n_pops <= n_groups or n <= n_pops:
            raise InvalidInput(
                f"Two-level AMOVA needs at least two {outer!r} strata, more "
                f"{inner!r} strata than {outer!r} strata, and more samples than "
                f"strata; found {n_groups}, {n_pops} and {n} respectively."
            )
        ssd_groups, group_sizes = _group_ssd(d2, group_codes, n_groups)
        ssd_wg = ssd_groups.sum()
        ssd_ag = ssd_total - ssd_wg
        ssd_apwg = ssd_wg - ssd_wp
        df_ag, df_apwg, df_wp = n_groups - 1, n_pops - n_groups, n - n_pops
        msd_ag, msd_apwg, msd_wp = ssd_ag / df_ag, ssd_apwg / df_apwg, ssd_wp / df_wp

        # Each population (inner stratum) belongs to exactly one group.
        pop_group = np.zeros(n_pops, dtype=np.int64)
        pop_group[pop_codes] = group_codes
        within_group_sq = np.sum(pop_sizes**2 / group_sizes[pop_group])
        n_coef = (n - within_group_sq) / df_apwg
        n_coef1 = (within_group_sq - np.sum(pop_sizes**2) / n) / df_ag
        n_coef2 = (n - np.sum(group_sizes**2) / n) / df_ag

        sigma_wp = msd_wp
        sigma_apwg = (msd_apwg - sigma_wp) / n_coef
        sigma_ag = (msd_ag - sigma_wp - n_coef1 * sigma_apwg) / n_coef2
        sources = [f"between_{outer}", f"between_{inner}_within_{outer}", f"within_{inner}"]
        dfs = [df_ag, df_apwg, df_wp]
        ssds = [ssd_ag, ssd_apwg, ssd_wp]
        msds = [msd_ag, msd_apwg, msd_wp]
        sigmas = [sigma_ag, sigma_apwg, sigma_wp]
        total = sigma_ag + sigma_apwg + sigma_wp
        phi = {
            f"Phi_{inner}_total": (sigma_ag + sigma_apwg) / total,
            f"Phi_{inner}_{outer}": sigma_apwg / (sigma_apwg + sigma_wp),
            f"Phi_{outer}_total": sigma_ag / total,
        }

    else:
        raise InvalidInput(
            f"AMOVA supports one or two active levels; found {list(levels)}."
        )

    df_amova = pd.DataFrame(
        {
            "source": sources,
            "df": dfs,
            "ssd": ssds,
            "msd": msds,
            "sigma": sigmas,
            "percent": 100 * np.asarray(sigmas) / total,
        }
    )
    phi = {k: float(v) for k, v in phi.items()}
    return df_amova, phi


def compute_amova(ds, strata, per_locus=False, max_missing=0.05) -> StatisticResult:
    """AMOVA variance components (sigma) as a statistic result labelled by
    source of variation."""
    if per_locus:
        raise InvalidInput("AMOVA variance components are not computed per locus.")
    check_aligned(ds, strata)
    d2 = squared_distances(ds, max_missing=max_missing)
    df_amova, _ = variance_components(d2, strata)
    return StatisticResult(
        name="AMOVA",
        values=df_amova["sigma"].to_numpy(),
        labels=tuple(df_amova["source"]),
    )


def component_alternatives(sources) -> List[str]:
    """Permutation test direction for each AMOVA source of variation.
    Between-strata components are larger than expected under random
    assignment when strata differ, within-strata components smaller."""
    return ["less" if source.startswith("within_") else "greater" for source in sources]


def _permuted_sigma(d2, strata, seed):
    rng = np.random.default_rng(seed)
    df_amova, _ = variance_components(d2, strata.permute(rng))
    return df_amova["sigma"].to_numpy()


def permute_variance_components(
    d2: np.ndarray,
    strata: StratificationScheme,
    *,
    nperm: int,
    random_seed: int = 42,
    n_jobs: int = 1,
    progress=None,
) -> np.ndarray:
    """Variance components (sigma) recomputed after shuffling whole strata
    rows across samples, so that nesting between levels is kept.

    Returns
    -------
    sigma : ndarray, float, shape (nperm, n_sources)

    """
    if nperm < 1:
        raise InvalidInput(f"Number of permutations must be at least 1; found {nperm}.")
    seeds = np.random.SeedSequence(random_seed).spawn(nperm)
    if n_jobs == 1:
        if progress is not None:
            seeds = progress(seeds)
        values = [_permuted_sigma(d2, strata, seed) for seed in seeds]
    else:
        tasks = [
            dask.delayed(_permuted_sigma, pure=False)(d2, strata, seed)
            for seed in seeds
        ]
        values = list(dask.compute(*tasks, scheduler="threads", num_workers=n_jobs))
    return np.stack(values)
