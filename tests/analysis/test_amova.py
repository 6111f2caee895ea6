import numpy as np
import pandas as pd
import pytest

from popdiff.analysis.amova import PopDiffAmova
from popdiff.analysis.amova_funcs import (
    compute_amova,
    genotype_dosages,
    permute_variance_components,
    squared_distances,
    variance_components,
)
from popdiff.util import InvalidInput


@pytest.fixture
def amova_api():
    return PopDiffAmova(show_progress=False)


@pytest.fixture
def haploid_split(build_dataset, build_strata):
    gt = np.array([[[0]], [[0]], [[1]], [[1]]], dtype=np.int8)
    ds = build_dataset(gt)
    strata = build_strata(ds, Pop=["A", "A", "B", "B"])
    return ds, strata


def test_genotype_dosages(tiny):
    ds, _ = tiny
    x = genotype_dosages(ds)
    np.testing.assert_array_equal(x, [[2, 0], [1, 1], [0, 2], [0, 2]])


def test_genotype_dosages_missing(build_dataset):
    gt = np.array(
        [
            [[0, 0], [-1, -1]],
            [[0, 1], [0, 0]],
            [[1, 1], [-1, -1]],
            [[-1, -1], [1, 1]],
        ],
        dtype=np.int8,
    )
    ds = build_dataset(gt)
    # Only the first locus has few enough missing calls.
    x = genotype_dosages(ds, max_missing=0.25)
    assert x.shape == (4, 2)
    np.testing.assert_allclose(x[3], [1, 1])
    x = genotype_dosages(ds, max_missing=0.5)
    assert x.shape == (4, 4)
    with pytest.raises(InvalidInput):
        genotype_dosages(ds, max_missing=0.1)


def test_one_level_known(haploid_split):
    ds, strata = haploid_split
    d2 = squared_distances(ds)
    df_amova, phi = variance_components(d2, strata)
    assert df_amova["source"].to_list() == ["between_Pop", "within_Pop"]
    assert df_amova["df"].to_list() == [1, 2]
    np.testing.assert_allclose(df_amova["ssd"], [2, 0])
    np.testing.assert_allclose(df_amova["sigma"], [1, 0])
    np.testing.assert_allclose(df_amova["percent"], [100, 0])
    assert phi == {"Phi_Pop_total": pytest.approx(1.0)}


def test_two_levels(microsat):
    ds, strata = microsat
    strata = strata.set_active(["Country", "Pop"])
    d2 = squared_distances(ds)
    df_amova, phi = variance_components(d2, strata)
    assert df_amova["source"].to_list() == [
        "between_Country",
        "between_Pop_within_Country",
        "within_Pop",
    ]
    assert df_amova["df"].to_list() == [1, 2, 36]
    assert df_amova["df"].sum() == ds.sizes["samples"] - 1

    # Sums of squares partition the total.
    total = variance_components(d2, strata.set_active("Pop"))[0]["ssd"].sum()
    assert df_amova["ssd"].sum() == pytest.approx(total)
    assert df_amova["percent"].sum() == pytest.approx(100)
    assert set(phi) == {"Phi_Pop_total", "Phi_Pop_Country", "Phi_Country_total"}


def test_amova_level_errors(microsat, build_strata):
    ds, strata = microsat
    d2 = squared_distances(ds)
    with pytest.raises(InvalidInput, match="one or two"):
        variance_components(d2, strata.set_active(["Country", "Pop", "Pop"]))
    # Inner level must have more strata than outer level.
    with pytest.raises(InvalidInput):
        variance_components(d2, strata.set_active(["Pop", "Country"]))
    one = build_strata(ds, Pop=["A"] * ds.sizes["samples"])
    with pytest.raises(InvalidInput):
        variance_components(d2, one)


def test_compute_amova(microsat):
    ds, strata = microsat
    result = compute_amova(ds, strata)
    assert result.name == "AMOVA"
    assert result.labels == ("between_Pop", "within_Pop")
    with pytest.raises(InvalidInput):
        compute_amova(ds, strata, per_locus=True)


def test_permute_variance_components(microsat):
    ds, strata = microsat
    d2 = squared_distances(ds)
    sigma = permute_variance_components(d2, strata, nperm=20, random_seed=7)
    assert sigma.shape == (20, 2)
    again = permute_variance_components(d2, strata, nperm=20, random_seed=7, n_jobs=3)
    np.testing.assert_array_equal(sigma, again)
    other = permute_variance_components(d2, strata, nperm=20, random_seed=8)
    assert not np.array_equal(sigma, other)
    with pytest.raises(InvalidInput):
        permute_variance_components(d2, strata, nperm=0)


def test_amova_api(amova_api, fixed_diff):
    ds, strata = fixed_diff
    df_amova, phi = amova_api.amova(ds, strata)
    assert isinstance(df_amova, pd.DataFrame)
    assert isinstance(phi, pd.Series)
    assert "p_value" not in df_amova.columns
    assert phi["Phi_Pop_total"] == pytest.approx(1.0)

    df_amova, phi = amova_api.amova(ds, strata, nperm=49)
    p = df_amova.set_index("source")["p_value"]
    # Few permutations separate the fixed populations as well as the
    # observed labels.
    assert p["between_Pop"] <= 0.1
    assert np.all((df_amova["p_value"] > 0) & (df_amova["p_value"] <= 1))


def test_amova_api_levels(amova_api, microsat):
    ds, strata = microsat
    df_amova, phi = amova_api.amova(ds, strata, levels=["Country", "Pop"], nperm=9)
    assert len(df_amova) == 3
    assert df_amova.columns.to_list() == [
        "source",
        "df",
        "ssd",
        "msd",
        "sigma",
        "percent",
        "p_value",
    ]
    assert len(phi) == 3
    with pytest.raises(InvalidInput):
        amova_api.amova(ds, strata, nperm=-1)
