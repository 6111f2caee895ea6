import allel  # type: ignore
import numpy as np
import pandas as pd
import xarray as xr
from scipy.stats import chi2  # type: ignore

from ..util import DIM_ALLELE, DIM_PLOIDY, InvalidInput
from .stat_funcs import genotype_array
from .strata import StratificationScheme, check_aligned


def diversity_table(ds: xr.Dataset, strata: StratificationScheme) -> pd.DataFrame:
    """Genetic diversity within each stratum at each locus.

    Expected heterozygosity is Nei's unbiased gene diversity,
    n / (n - 1) * (1 - sum(p ** 2)) with n the number of called gene
    copies. Observed heterozygosity is not defined for haploid data and
    is reported as NaN.

    """
    check_aligned(ds, strata)
    gt = genotype_array(ds)
    ploidy = ds.sizes[DIM_PLOIDY]
    max_allele = ds.sizes[DIM_ALLELE] - 1
    locus_ids = ds["locus_id"].values.astype(str)

    frames = []
    for group, idx in strata.group_indices().items():
        gt_group = gt.take(idx, axis=1)
        called = gt_group.is_called()
        n_called = called.sum(axis=1)
        ac = gt_group.count_alleles(max_allele=max_allele)
        an = np.asarray(ac.sum(axis=1))
        with np.errstate(divide="ignore", invalid="ignore"):
            af = np.asarray(ac.to_frequencies())
            he = 1 - np.sum(af**2, axis=1)
            he = np.where(an > 1, he * an / (an - 1), np.nan)
        if ploidy > 1:
            ho = allel.heterozygosity_observed(gt_group, fill=np.nan)
        else:
            ho = np.full(len(locus_ids), np.nan)
        frames.append(
            pd.DataFrame(
                {
                    "stratum": group,
                    "locus": locus_ids,
                    "n": n_called,
                    "n_alleles": np.asarray(ac.allelism()),
                    "ho": ho,
                    "he": he,
                }
            )
        )
    return pd.concat(frames, ignore_index=True)


def hwe_chisq(calls: np.ndarray, n_alleles: int) -> float:
    """Chi-square statistic for departure from Hardy-Weinberg proportions.

    Parameters
    ----------
    calls : ndarray, int, shape (n_samples, 2)
        Diploid genotypes with allele indices in range(n_alleles), no
        missing calls. Every allele must be observed.

    """
    n = calls.shape[0]
    lo = np.minimum(calls[:, 0], calls[:, 1])
    hi = np.maximum(calls[:, 0], calls[:, 1])
    observed = np.zeros((n_alleles, n_alleles))
    np.add.at(observed, (lo, hi), 1)
    p = np.bincount(calls.ravel(), minlength=n_alleles) / (2 * n)
    expected = 2 * n * np.outer(p, p)
    np.fill_diagonal(expected, n * p**2)
    iu = np.triu_indices(n_alleles)
    o, e = observed[iu], expected[iu]
    return float(np.sum((o - e) ** 2 / e))


def _locus_hwe(calls, rng, nsim):
    loc_called = np.all(calls >= 0, axis=1)
    calls = calls[loc_called]
    alleles, codes = np.unique(calls, return_inverse=True)
    n_alleles = len(alleles)
    n = calls.shape[0]
    if n_alleles < 2:
        return n, n_alleles, np.nan, 0, np.nan, np.nan
    codes = codes.reshape(calls.shape)
    stat = hwe_chisq(codes, n_alleles)
    df = n_alleles * (n_alleles - 1) // 2
    p_value = float(chi2.sf(stat, df))
    p_value_mc = np.nan
    if nsim > 0:
        pool = codes.ravel()
        hits = 0
        for _ in range(nsim):
            sim = rng.permutation(pool).reshape(n, 2)
            if hwe_chisq(sim, n_alleles) >= stat:
                hits += 1
        p_value_mc = (1 + hits) / (1 + nsim)
    return n, n_alleles, stat, df, p_value, p_value_mc


def hwe_table(
    ds: xr.Dataset,
    strata: StratificationScheme,
    nsim: int = 0,
    random_seed: int = 42,
) -> pd.DataFrame:
    """Chi-square test of Hardy-Weinberg equilibrium within each stratum
    at each locus.

    If `nsim` is positive, a Monte Carlo p-value is also computed by
    shuffling gene copies among the genotyped samples `nsim` times.

    """
    check_aligned(ds, strata)
    if ds.sizes[DIM_PLOIDY] != 2:
        raise InvalidInput(
            f"Hardy-Weinberg tests require diploid genotypes; found ploidy {ds.sizes[DIM_PLOIDY]}."
        )
    if nsim < 0:
        raise InvalidInput(f"Number of simulations must not be negative; found {nsim}.")
    gt = ds["call_genotype"].values
    locus_ids = ds["locus_id"].values.astype(str)
    indices = strata.group_indices()
    seeds = np.random.SeedSequence(random_seed).spawn(len(indices) * len(locus_ids))

    rows = []
    i = 0
    for group, idx in indices.items():
        for j, locus in enumerate(locus_ids):
            rng = np.random.default_rng(seeds[i])
            i += 1
            n, n_alleles, stat, df, p_value, p_value_mc = _locus_hwe(
                gt[idx, j], rng, nsim
            )
            rows.append((group, locus, n, n_alleles, stat, df, p_value, p_value_mc))

    df_hwe = pd.DataFrame(
        rows,
        columns=[
            "stratum",
            "locus",
            "n",
            "n_alleles",
            "chi2",
            "df",
            "p_value",
            "p_value_mc",
        ],
    )
    if nsim == 0:
        df_hwe = df_hwe.drop(columns="p_value_mc")
    return df_hwe
