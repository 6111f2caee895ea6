import numpy as np
import pandas as pd
import pytest
import xarray as xr

from popdiff.analysis.genotype_data import (
    PopDiffGenotypeData,
    genotype_dataset,
    parse_genotype_table,
    parse_sequence_loci,
)
from popdiff.analysis.strata import StratificationScheme
from popdiff.util import DIM_ALLELE, DIM_LOCUS, DIM_PLOIDY, DIM_SAMPLE, InvalidInput


@pytest.fixture
def data_api():
    return PopDiffGenotypeData(show_progress=False)


def write_text(path, text):
    path.write_text(text)
    return path.as_posix()


def test_read_genotypes(tmp_path, data_api):
    path = write_text(
        tmp_path / "genotypes.csv",
        "sample,L1,L2\n"
        "s1,120/124,A/B\n"
        "s2,124/124,NA\n"
        "s3,0,B/B\n"
        "s4,98/124,A/-\n",
    )
    ds = data_api.read_genotypes(path)
    assert isinstance(ds, xr.Dataset)
    assert ds.sizes[DIM_SAMPLE] == 4
    assert ds.sizes[DIM_LOCUS] == 2
    assert ds.sizes[DIM_PLOIDY] == 2
    assert ds.sizes[DIM_ALLELE] == 3
    assert ds["call_genotype"].dtype == np.int8
    assert ds["sample_id"].values.tolist() == ["s1", "s2", "s3", "s4"]
    assert ds["locus_id"].values.tolist() == ["L1", "L2"]

    # Alleles are in numeric order, padded with empty labels.
    assert ds["locus_allele"].values[0].tolist() == ["98", "120", "124"]
    assert ds["locus_allele"].values[1].tolist() == ["A", "B", ""]

    gt = ds["call_genotype"].values
    np.testing.assert_array_equal(gt[:, 0], [[1, 2], [2, 2], [-1, -1], [0, 2]])
    np.testing.assert_array_equal(gt[:, 1], [[0, 1], [-1, -1], [1, 1], [0, -1]])


def test_read_genotypes_options(tmp_path, data_api):
    path = write_text(
        tmp_path / "genotypes.csv",
        "L1,id,L2\n" "120|124,x,A|A\n" "?,y,A|C\n",
    )
    ds = data_api.read_genotypes(path, sample_column="id", sep="|", missing=("?",))
    assert ds["sample_id"].values.tolist() == ["x", "y"]
    assert ds["locus_id"].values.tolist() == ["L1", "L2"]
    np.testing.assert_array_equal(ds["call_genotype"].values[1, 0], [-1, -1])


def test_read_genotypes_ploidy_mismatch(tmp_path, data_api):
    path = write_text(
        tmp_path / "genotypes.csv",
        "sample,L1\n" "s1,120/124\n" "s2,120/124/128\n",
    )
    with pytest.raises(InvalidInput, match="does not have 2 alleles"):
        data_api.read_genotypes(path)
    with pytest.raises(InvalidInput):
        data_api.read_genotypes(path, ploidy=3)


def test_parse_genotype_table_errors():
    with pytest.raises(InvalidInput, match="only missing"):
        parse_genotype_table(pd.DataFrame({"id": ["a", "b"], "L1": ["NA", ""]}))
    with pytest.raises(InvalidInput, match="no locus columns"):
        parse_genotype_table(pd.DataFrame({"id": ["a", "b"]}))
    with pytest.raises(InvalidInput):
        parse_genotype_table(
            pd.DataFrame({"id": ["a"], "L1": ["1/2"]}), sample_column="sample"
        )


def test_haploid_table():
    df = pd.DataFrame({"id": ["a", "b", "c"], "L1": ["x", "y", "x"]})
    ds = parse_genotype_table(df)
    assert ds.sizes[DIM_PLOIDY] == 1
    np.testing.assert_array_equal(ds["call_genotype"].values[:, 0, 0], [0, 1, 0])


def test_genotype_dataset_errors():
    gt = np.zeros((2, 1, 2), dtype=np.int8)
    ok = dict(call_genotype=gt, sample_id=["a", "b"], locus_id=["L1"], locus_allele=[["x"]])
    genotype_dataset(**ok)
    with pytest.raises(InvalidInput, match="unique"):
        genotype_dataset(**{**ok, "sample_id": ["a", "a"]})
    with pytest.raises(InvalidInput, match="3 dimensions"):
        genotype_dataset(**{**ok, "call_genotype": gt[:, :, 0]})
    with pytest.raises(InvalidInput, match="out of range"):
        genotype_dataset(**{**ok, "call_genotype": gt + 1})
    with pytest.raises(InvalidInput, match="At most 127"):
        genotype_dataset(
            **{**ok, "locus_allele": [[str(i) for i in range(128)]]}
        )


def test_read_sequences(tmp_path, data_api):
    gene1 = write_text(
        tmp_path / "gene1.fasta",
        ">s1\nACGT\n>s2\nACGT\n>s3\nACGA\n",
    )
    gene2 = write_text(
        tmp_path / "gene2.fasta",
        ">s2\nNNNN\n>s1\nAAAA\n>s3\nAAAT\n",
    )
    ds = data_api.read_sequences({"gene1": gene1, "gene2": gene2})
    assert ds.sizes[DIM_PLOIDY] == 1
    assert ds["locus_id"].values.tolist() == ["gene1", "gene2"]
    assert ds["sample_id"].values.tolist() == ["s1", "s2", "s3"]
    gt = ds["call_genotype"].values[:, :, 0]
    assert gt[0, 0] == gt[1, 0]
    assert gt[0, 0] != gt[2, 0]
    assert gt[1, 1] == -1
    assert gt[0, 1] != gt[2, 1]
    assert ds["locus_allele"].values[0].tolist() == ["hap1", "hap2"]


def test_read_sequences_errors(tmp_path, data_api):
    gene1 = write_text(tmp_path / "gene1.fasta", ">s1\nACGT\n>s2\nACGT\n")
    gene2 = write_text(tmp_path / "gene2.fasta", ">s1\nACGT\n>s3\nACGT\n")
    with pytest.raises(InvalidInput, match="same samples"):
        data_api.read_sequences({"gene1": gene1, "gene2": gene2})
    dup = write_text(tmp_path / "dup.fasta", ">s1\nACGT\n>s1\nACGA\n")
    with pytest.raises(InvalidInput, match="Duplicate"):
        data_api.read_sequences({"gene1": dup})
    with pytest.raises(InvalidInput):
        parse_sequence_loci({})


def test_read_strata(tmp_path, data_api, tiny):
    ds, _ = tiny
    path = write_text(
        tmp_path / "strata.csv",
        "id,Country,Pop\n"
        "S003,C2,B\n"
        "S002,C2,B\n"
        "S001,C1,A\n"
        "S000,C1,A\n",
    )
    strata = data_api.read_strata(path, ds=ds, active=["Country", "Pop"])
    assert isinstance(strata, StratificationScheme)
    assert strata.sample_ids.tolist() == ["S000", "S001", "S002", "S003"]
    assert strata.labels.tolist() == ["C1_A", "C1_A", "C2_B", "C2_B"]


def test_read_strata_na_labels(tmp_path, data_api, tiny):
    ds, _ = tiny
    path = write_text(
        tmp_path / "strata.csv",
        "id,Country\nS000,NA\nS001,NA\nS002,None\nS003,null\n",
    )
    strata = data_api.read_strata(path, ds=ds)
    assert strata.groups == ("NA", "None", "null")
    assert strata.labels.tolist() == ["NA", "NA", "None", "null"]

    # Empty cells are still missing labels.
    path = write_text(
        tmp_path / "strata_missing.csv",
        "id,Country\nS000,NA\nS001,\nS002,UK\nS003,UK\n",
    )
    with pytest.raises(InvalidInput, match="Missing stratum labels"):
        data_api.read_strata(path, ds=ds)


def test_check_types(data_api):
    with pytest.raises(TypeError):
        data_api.read_genotypes(path=123)
