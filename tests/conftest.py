import numpy as np
import pandas as pd
import pytest

from popdiff import PopDiff
from popdiff.analysis.genotype_data import genotype_dataset
from popdiff.analysis.strata import StratificationScheme

# N.B., this file (conftest.py) is used by pytest to share
# fixtures which are needed across multiple test modules.
# For more information see the following link:
#
# https://docs.pytest.org/en/7.2.x/reference/fixtures.html#conftest-py-sharing-fixtures-across-multiple-files
#
# All data used in tests is simulated here, there is no
# dependency on external data files.


def simulate_genotypes(rng, group_freqs, n_per_group, ploidy=2):
    """Draw genotypes for each group from its allele frequencies.

    Parameters
    ----------
    group_freqs : ndarray, float, shape (n_groups, n_loci, n_alleles)

    """
    n_groups, n_loci, n_alleles = group_freqs.shape
    calls = []
    for g in range(n_groups):
        for _ in range(n_per_group):
            sample = np.empty((n_loci, ploidy), dtype=np.int8)
            for j in range(n_loci):
                sample[j] = rng.choice(n_alleles, size=ploidy, p=group_freqs[g, j])
            calls.append(sample)
    return np.stack(calls)


def make_dataset(gt, locus_allele=None, sample_id=None, locus_id=None):
    gt = np.asarray(gt)
    n_samples, n_loci, _ = gt.shape
    if sample_id is None:
        sample_id = [f"S{i:03d}" for i in range(n_samples)]
    if locus_id is None:
        locus_id = [f"L{j + 1}" for j in range(n_loci)]
    if locus_allele is None:
        n_alleles = max(int(gt.max()) + 1, 1)
        locus_allele = [[str(100 + 2 * a) for a in range(n_alleles)]] * n_loci
    return genotype_dataset(
        call_genotype=gt,
        sample_id=sample_id,
        locus_id=locus_id,
        locus_allele=locus_allele,
    )


def make_strata(ds, active=None, **levels):
    table = pd.DataFrame(levels, index=ds["sample_id"].values.astype(str))
    return StratificationScheme(table, active=active)


@pytest.fixture
def rng():
    return np.random.default_rng(20240601)


@pytest.fixture
def microsat(rng):
    """Diploid microsatellite-like data, two countries each with two
    populations of ten samples."""
    n_loci, n_alleles, n_per_pop = 8, 6, 10
    base = rng.dirichlet(np.ones(n_alleles), size=n_loci)
    freqs = np.stack(
        [
            np.stack([rng.dirichlet(base[j] * 10 + 0.1) for j in range(n_loci)])
            for _ in range(4)
        ]
    )
    gt = simulate_genotypes(rng, freqs, n_per_pop)
    ds = make_dataset(gt, locus_allele=[[str(100 + 2 * a) for a in range(n_alleles)]] * n_loci)
    pops = np.repeat(["P1", "P2", "P3", "P4"], n_per_pop)
    countries = np.repeat(["C1", "C2"], 2 * n_per_pop)
    strata = make_strata(ds, active=["Pop"], Country=countries, Pop=pops)
    return ds, strata


@pytest.fixture
def fixed_diff():
    """Two populations of six diploid samples, fixed for different alleles
    at every locus."""
    gt = np.zeros((12, 3, 2), dtype=np.int8)
    gt[6:] = 1
    ds = make_dataset(gt)
    strata = make_strata(ds, Pop=["A"] * 6 + ["B"] * 6)
    return ds, strata


@pytest.fixture
def tiny():
    """Four diploid samples at one locus, strata [A, A, B, B]."""
    gt = np.array([[[0, 0]], [[0, 1]], [[1, 1]], [[1, 1]]], dtype=np.int8)
    ds = make_dataset(gt)
    strata = make_strata(ds, Pop=["A", "A", "B", "B"])
    return ds, strata


@pytest.fixture
def unbalanced(rng):
    """One singleton population and one population of five samples."""
    gt = rng.integers(0, 3, size=(6, 4, 2)).astype(np.int8)
    ds = make_dataset(gt)
    strata = make_strata(ds, Pop=["A"] + ["B"] * 5)
    return ds, strata


@pytest.fixture
def api():
    return PopDiff(show_progress=False)


@pytest.fixture
def build_dataset():
    return make_dataset


@pytest.fixture
def build_strata():
    return make_strata
