import numpy as np
import pytest
from pytest_cases import parametrize_with_cases

from popdiff.analysis.stat_funcs import (
    StatisticResult,
    compute_d_jost,
    compute_fst_wc,
    compute_gst_hedrick,
    compute_gst_nei,
    group_allele_counts,
    heterozygosity_components,
)
from popdiff.analysis.statistic import Statistic
from popdiff.util import InvalidInput


def test_group_allele_counts(tiny):
    ds, strata = tiny
    ac = group_allele_counts(ds, strata)
    assert ac.shape == (2, 1, 2)
    np.testing.assert_array_equal(ac[0, 0], [3, 1])
    np.testing.assert_array_equal(ac[1, 0], [0, 4])


def test_heterozygosity_components(tiny):
    ds, strata = tiny
    h = heterozygosity_components(group_allele_counts(ds, strata))
    # Hs = 4/3 * mean(0.375, 0), Ht = 0.46875 + Hs / (2 * 4)
    assert h["hs"][0] == pytest.approx(0.25)
    assert h["ht"][0] == pytest.approx(0.5)
    assert h["k"][0] == 2


def test_heterozygosity_statistics(tiny):
    ds, strata = tiny
    assert float(compute_gst_nei(ds, strata)) == pytest.approx(0.5)
    assert float(compute_gst_hedrick(ds, strata)) == pytest.approx(0.5 * 1.25 / 0.75)
    assert float(compute_d_jost(ds, strata)) == pytest.approx(2 / 3)


def test_single_stratum_locus_is_nan():
    ac = np.array([[[4, 0], [2, 2]], [[0, 0], [1, 3]]])
    h = heterozygosity_components(ac)
    assert np.isnan(h["hs"][0])
    assert np.isnan(h["ht"][0])
    assert np.isfinite(h["hs"][1])
    np.testing.assert_array_equal(h["k"], [1, 2])


def case_gst_nei():
    return compute_gst_nei


def case_gst_hedrick():
    return compute_gst_hedrick


def case_d_jost():
    return compute_d_jost


def case_fst_wc():
    return compute_fst_wc


@parametrize_with_cases("compute", cases=".")
def test_fixed_differences(compute, fixed_diff):
    ds, strata = fixed_diff
    result = compute(ds, strata)
    assert result.is_scalar
    assert float(result) == pytest.approx(1.0)


@parametrize_with_cases("compute", cases=".")
def test_per_locus(compute, microsat):
    ds, strata = microsat
    result = compute(ds, strata, per_locus=True)
    assert isinstance(result, StatisticResult)
    assert result.labels == tuple(ds["locus_id"].values.astype(str))
    assert result.values.shape == (ds.sizes["loci"],)
    assert not result.values.flags.writeable
    with pytest.raises(TypeError):
        float(result)


@parametrize_with_cases("compute", cases=".")
def test_single_stratum(compute, microsat):
    ds, strata = microsat
    strata_one = strata.take(np.nonzero(strata.labels == "P1")[0])
    ds_one = ds.isel(samples=np.nonzero(strata.labels == "P1")[0])
    with pytest.raises(InvalidInput, match="two strata"):
        compute(ds_one, strata_one)


def test_identical_strata_not_differentiated(microsat):
    ds, strata = microsat
    idx = np.nonzero(strata.labels == "P1")[0]
    ds_dup = ds.isel(samples=np.concatenate([idx, idx]))
    table = strata.table.iloc[np.concatenate([idx, idx])].copy()
    table["Pop"] = ["X"] * len(idx) + ["Y"] * len(idx)
    strata_dup = type(strata)(table, active="Pop")
    assert float(compute_gst_nei(ds_dup, strata_dup)) <= 0
    assert float(compute_gst_nei(ds_dup, strata_dup)) == pytest.approx(0, abs=0.05)


def test_fst_wc_haploid(build_dataset, build_strata):
    ds = build_dataset(np.array([[[0]], [[1]], [[1]], [[0]]]))
    strata = build_strata(ds, Pop=["A", "A", "B", "B"])
    with pytest.raises(InvalidInput, match="diploid"):
        compute_fst_wc(ds, strata)


def test_misaligned(microsat, tiny):
    ds, _ = microsat
    _, strata = tiny
    with pytest.raises(InvalidInput):
        compute_gst_nei(ds, strata)


def test_statistic_result():
    result = StatisticResult(name="x", values=0.5)
    assert result.is_scalar
    assert float(result) == 0.5
    with pytest.raises(InvalidInput):
        StatisticResult(name="x", values=[0.1, 0.2])
    with pytest.raises(InvalidInput):
        StatisticResult(name="x", values=[0.1, 0.2], labels=("a",))


def test_statistic_parse():
    assert Statistic.parse("Gst_Nei") is Statistic.GST_NEI
    assert Statistic.parse("d_jost") is Statistic.D_JOST
    assert Statistic.parse("GST_HEDRICK") is Statistic.GST_HEDRICK
    assert Statistic.parse(Statistic.AMOVA) is Statistic.AMOVA
    with pytest.raises(InvalidInput, match="Unknown statistic"):
        Statistic.parse("Jost_D_prime")


def test_statistic_compute(microsat):
    ds, strata = microsat
    result = Statistic.D_JOST.compute(ds, strata)
    assert float(result) == float(compute_d_jost(ds, strata))
    assert result.name == "D_Jost"
