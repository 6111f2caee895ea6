from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import allel  # type: ignore
import numpy as np
import xarray as xr

from ..util import DIM_ALLELE, DIM_PLOIDY, InvalidInput
from .strata import StratificationScheme, check_aligned


@dataclass(frozen=True)
class StatisticResult:
    """Value of a named statistic, either a single global estimate or one
    value per label (locus or variance component)."""

    name: str
    values: np.ndarray
    labels: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        values = np.array(self.values, dtype="f8")
        values.setflags(write=False)
        object.__setattr__(self, "values", values)
        if self.labels is None:
            if values.ndim != 0:
                raise InvalidInput("A result without labels must be a scalar.")
        else:
            labels = tuple(str(v) for v in self.labels)
            if values.ndim != 1 or values.shape[0] != len(labels):
                raise InvalidInput(
                    f"Expected {len(labels)} values, one per label; found shape {values.shape}."
                )
            object.__setattr__(self, "labels", labels)

    @property
    def is_scalar(self) -> bool:
        return self.labels is None

    def __float__(self):
        if not self.is_scalar:
            raise TypeError(f"{self.name} result has {len(self.values)} values.")
        return float(self.values)


def genotype_array(ds: xr.Dataset) -> allel.GenotypeArray:
    gt = ds["call_genotype"].values.transpose(1, 0, 2)
    return allel.GenotypeArray(np.ascontiguousarray(gt, dtype=np.int8))


def _check_groups(strata: StratificationScheme):
    if len(strata.groups) < 2:
        raise InvalidInput(
            f"At least two strata are required; found {list(strata.groups)}."
        )


def group_allele_counts(ds: xr.Dataset, strata: StratificationScheme) -> np.ndarray:
    """Count alleles within each stratum.

    Returns
    -------
    ac : ndarray, int, shape (n_groups, n_loci, n_alleles)

    """
    check_aligned(ds, strata)
    gt = genotype_array(ds)
    max_allele = ds.sizes[DIM_ALLELE] - 1
    indices = strata.group_indices()
    ac = np.stack(
        [
            np.asarray(gt.count_alleles(max_allele=max_allele, subpop=idx))
            for idx in indices.values()
        ]
    )
    return ac


def heterozygosity_components(ac: np.ndarray) -> Dict[str, np.ndarray]:
    """Per-locus within-strata (Hs) and total (Ht) expected heterozygosity,
    with small-sample corrections.

    Strata with no called alleles at a locus are left out of that locus.
    Loci observed in fewer than two strata are NaN.

    """
    an = ac.sum(axis=2)
    observed = an > 0
    k = observed.sum(axis=0)
    with np.errstate(divide="ignore", invalid="ignore"):
        p = np.where(observed[:, :, None], ac / an[:, :, None], np.nan)
        hs_raw = np.nansum(1 - np.sum(p**2, axis=2), axis=0) / k
        p_bar = np.nansum(p, axis=0) / k[:, None]
        ht_raw = 1 - np.sum(p_bar**2, axis=1)
        # Harmonic mean of gene copies per stratum.
        n_harm = k / np.sum(np.where(observed, 1 / an, 0), axis=0)
        hs = n_harm / (n_harm - 1) * hs_raw
        ht = ht_raw + hs / (k * n_harm)
    loc_few = k < 2
    hs[loc_few] = np.nan
    ht[loc_few] = np.nan
    return dict(hs=hs, ht=ht, k=k)


def gst_nei(hs, ht):
    with np.errstate(divide="ignore", invalid="ignore"):
        return (ht - hs) / ht


def gst_hedrick(hs, ht, k):
    with np.errstate(divide="ignore", invalid="ignore"):
        return (ht - hs) / ht * (k - 1 + hs) / ((k - 1) * (1 - hs))


def d_jost(hs, ht, k):
    with np.errstate(divide="ignore", invalid="ignore"):
        return (ht - hs) / (1 - hs) * (k / (k - 1))


def _global_means(hs, ht):
    loc = np.isfinite(hs) & np.isfinite(ht)
    if not np.any(loc):
        return np.nan, np.nan
    return hs[loc].mean(), ht[loc].mean()


def _heterozygosity_statistic(name, func, ds, strata, per_locus):
    _check_groups(strata)
    ac = group_allele_counts(ds, strata)
    h = heterozygosity_components(ac)
    k = h["k"].astype("f8")
    if per_locus:
        if func is gst_nei:
            values = func(h["hs"], h["ht"])
        else:
            values = func(h["hs"], h["ht"], k)
        labels = tuple(ds["locus_id"].values.astype(str))
        return StatisticResult(name=name, values=values, labels=labels)
    hs, ht = _global_means(h["hs"], h["ht"])
    if func is gst_nei:
        value = func(hs, ht)
    else:
        value = func(hs, ht, float(len(strata.groups)))
    return StatisticResult(name=name, values=value)


def compute_gst_nei(ds, strata, per_locus=False) -> StatisticResult:
    return _heterozygosity_statistic("Gst_Nei", gst_nei, ds, strata, per_locus)


def compute_gst_hedrick(ds, strata, per_locus=False) -> StatisticResult:
    return _heterozygosity_statistic("Gst_Hedrick", gst_hedrick, ds, strata, per_locus)


def compute_d_jost(ds, strata, per_locus=False) -> StatisticResult:
    return _heterozygosity_statistic("D_Jost", d_jost, ds, strata, per_locus)


def compute_fst_wc(ds, strata, per_locus=False) -> StatisticResult:
    """Weir & Cockerham's Fst, delegated to scikit-allel."""
    _check_groups(strata)
    check_aligned(ds, strata)
    if ds.sizes[DIM_PLOIDY] != 2:
        raise InvalidInput(
            f"Weir & Cockerham Fst requires diploid genotypes; found ploidy {ds.sizes[DIM_PLOIDY]}."
        )
    gt = genotype_array(ds)
    subpops = [idx.tolist() for idx in strata.group_indices().values()]
    a, b, c = allel.weir_cockerham_fst(
        gt, subpops, max_allele=ds.sizes[DIM_ALLELE] - 1
    )
    num = np.nansum(a, axis=1)
    den = np.nansum(a + b + c, axis=1)
    if per_locus:
        with np.errstate(divide="ignore", invalid="ignore"):
            values = np.where(den != 0, num / den, np.nan)
        labels = tuple(ds["locus_id"].values.astype(str))
        return StatisticResult(name="Fst_WC", values=values, labels=labels)
    total = np.sum(den)
    value = np.sum(num) / total if total != 0 else np.nan
    return StatisticResult(name="Fst_WC", values=value)
