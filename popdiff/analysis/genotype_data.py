from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
import xarray as xr
from Bio import SeqIO  # type: ignore
from numpydoc_decorator import doc  # type: ignore

from ..util import (
    DIM_ALLELE,
    DIM_LOCUS,
    DIM_PLOIDY,
    DIM_SAMPLE,
    InvalidInput,
    check_types,
    natural_sort_key,
)
from . import base_params, genotype_params
from .base import PopDiffBase
from .strata import StratificationScheme, align_strata

# Allele indices are stored as int8, with -1 for missing.
MAX_ALLELES = 127

MISSING_SEQUENCE_CHARS = frozenset("N?-")


def genotype_dataset(
    *,
    call_genotype,
    sample_id: Sequence[str],
    locus_id: Sequence[str],
    locus_allele: Sequence[Sequence[str]],
) -> xr.Dataset:
    """Build and validate a genotype dataset.

    Parameters
    ----------
    call_genotype : array_like, int, shape (n_samples, n_loci, ploidy)
        Allele indices, -1 for missing.
    sample_id : sequence of str
        Unique sample identifiers.
    locus_id : sequence of str
        Locus names.
    locus_allele : sequence of sequence of str
        Allele labels for each locus, in allele index order.

    """
    gt = np.asarray(call_genotype)
    if gt.ndim != 3:
        raise InvalidInput(
            f"Genotype array must have 3 dimensions (samples, loci, ploidy); found {gt.ndim}."
        )
    n_samples, n_loci, ploidy = gt.shape
    if ploidy < 1:
        raise InvalidInput("Ploidy must be at least 1.")
    sample_id = [str(s) for s in sample_id]
    locus_id = [str(v) for v in locus_id]
    if len(sample_id) != n_samples:
        raise InvalidInput(
            f"Found {len(sample_id)} sample identifiers for {n_samples} samples."
        )
    if len(set(sample_id)) != n_samples:
        raise InvalidInput("Sample identifiers must be unique.")
    if len(locus_id) != n_loci:
        raise InvalidInput(f"Found {len(locus_id)} locus identifiers for {n_loci} loci.")
    if len(locus_allele) != n_loci:
        raise InvalidInput(f"Found allele labels for {len(locus_allele)} of {n_loci} loci.")
    if n_loci == 0:
        raise InvalidInput("Dataset has no loci.")

    n_alleles = max(1, max(len(a) for a in locus_allele))
    if n_alleles > MAX_ALLELES:
        raise InvalidInput(
            f"At most {MAX_ALLELES} alleles per locus are supported; found {n_alleles}."
        )
    allele_labels = np.full((n_loci, n_alleles), "", dtype=object)
    for i, alleles in enumerate(locus_allele):
        allele_labels[i, : len(alleles)] = [str(a) for a in alleles]
        # Check allele indices are within range for this locus.
        gi = gt[:, i]
        if np.any(gi < -1) or np.any(gi >= len(alleles)):
            raise InvalidInput(
                f"Allele index out of range at locus {locus_id[i]!r}; "
                f"locus has {len(alleles)} alleles."
            )

    ds = xr.Dataset(
        {
            "sample_id": ([DIM_SAMPLE], np.array(sample_id, dtype=object)),
            "locus_id": ([DIM_LOCUS], np.array(locus_id, dtype=object)),
            "locus_allele": ([DIM_LOCUS, DIM_ALLELE], allele_labels),
            "call_genotype": (
                [DIM_SAMPLE, DIM_LOCUS, DIM_PLOIDY],
                gt.astype(np.int8),
            ),
        }
    )
    return ds


def _encode_locus(calls: List[List[Optional[str]]]):
    """Map allele codes at one locus to indices in natural sort order."""
    observed = {a for call in calls for a in call if a is not None}
    alleles = sorted(observed, key=natural_sort_key)
    index = {a: i for i, a in enumerate(alleles)}
    encoded = [[index[a] if a is not None else -1 for a in call] for call in calls]
    return encoded, alleles


def parse_genotype_table(
    df: pd.DataFrame,
    *,
    sample_column: Optional[str] = None,
    sep: str = genotype_params.sep_default,
    missing: Sequence[str] = genotype_params.missing_default,
    ploidy: Optional[int] = None,
) -> xr.Dataset:
    """Parse a table of genotype strings, one row per sample and one
    column per locus, into a genotype dataset."""
    if sample_column is None:
        sample_column = df.columns[0]
    if sample_column not in df.columns:
        raise InvalidInput(f"Genotype table has no {sample_column!r} column.")
    loci = [c for c in df.columns if c != sample_column]
    if not loci:
        raise InvalidInput("Genotype table has no locus columns.")
    missing_codes = set(missing)
    sample_id = df[sample_column].astype(str).to_list()
    if not sample_id:
        raise InvalidInput("Genotype table has no samples.")

    # First pass splits genotypes, an empty list marks a missing call.
    columns: List[List[List[Optional[str]]]] = []
    for locus in loci:
        calls: List[List[Optional[str]]] = []
        for sample, value in zip(sample_id, df[locus].to_list()):
            if pd.isna(value) or str(value).strip() in missing_codes:
                calls.append([])
                continue
            alleles: List[Optional[str]] = [
                a.strip() if a.strip() not in missing_codes else None
                for a in str(value).split(sep)
            ]
            if ploidy is None:
                ploidy = len(alleles)
            if len(alleles) != ploidy:
                raise InvalidInput(
                    f"Genotype {value!r} for sample {sample!r} at locus {locus!r} "
                    f"does not have {ploidy} alleles."
                )
            calls.append(alleles)
        columns.append(calls)

    if ploidy is None:
        raise InvalidInput("Genotype table contains only missing data.")

    gt = np.full((len(sample_id), len(loci), ploidy), -1, dtype=np.int16)
    locus_allele = []
    for j, calls in enumerate(columns):
        calls = [c if c else [None] * ploidy for c in calls]
        encoded, alleles = _encode_locus(calls)
        gt[:, j] = encoded
        locus_allele.append(alleles)

    return genotype_dataset(
        call_genotype=gt,
        sample_id=sample_id,
        locus_id=[str(v) for v in loci],
        locus_allele=locus_allele,
    )


def parse_sequence_loci(loci: Mapping[str, Mapping[str, str]]) -> xr.Dataset:
    """Build a haploid genotype dataset from sequences, one locus per gene.

    Each distinct sequence at a locus is one allele (haplotype). All loci
    must cover the same set of samples.

    """
    if not loci:
        raise InvalidInput("No sequence loci provided.")
    locus_names = list(loci.keys())
    sample_id = list(loci[locus_names[0]].keys())
    sample_set = set(sample_id)

    gt = np.full((len(sample_id), len(locus_names), 1), -1, dtype=np.int16)
    locus_allele = []
    for j, locus in enumerate(locus_names):
        seqs = loci[locus]
        if set(seqs.keys()) != sample_set:
            extra = sorted(set(seqs.keys()) - sample_set)
            absent = sorted(sample_set - set(seqs.keys()))
            raise InvalidInput(
                f"Locus {locus!r} does not cover the same samples as locus "
                f"{locus_names[0]!r}; missing {absent}, unexpected {extra}."
            )
        calls: List[List[Optional[str]]] = []
        for s in sample_id:
            seq = str(seqs[s]).upper()
            if not seq or set(seq) <= MISSING_SEQUENCE_CHARS:
                calls.append([None])
            else:
                calls.append([seq])
        encoded, haplotypes = _encode_locus(calls)
        gt[:, j] = encoded
        locus_allele.append([f"hap{i + 1}" for i in range(len(haplotypes))])

    return genotype_dataset(
        call_genotype=gt,
        sample_id=sample_id,
        locus_id=locus_names,
        locus_allele=locus_allele,
    )


class PopDiffGenotypeData(PopDiffBase):
    def __init__(
        self,
        **kwargs,
    ):
        # N.B., this class is designed to work cooperatively, and
        # so it's important that any remaining parameters are passed
        # to the superclass constructor.
        super().__init__(**kwargs)

    @check_types
    @doc(
        summary="""
            Read a comma-separated genotype table, with one row per sample and
            one column per locus.
        """,
        returns="""
            A dataset with variables "sample_id", "locus_id", "locus_allele"
            and "call_genotype".
        """,
    )
    def read_genotypes(
        self,
        path: base_params.path,
        sample_column: base_params.sample_column = None,
        sep: genotype_params.sep = genotype_params.sep_default,
        missing: genotype_params.missing = genotype_params.missing_default,
        ploidy: genotype_params.ploidy = None,
    ) -> xr.Dataset:
        with self._spinner(desc="Read genotypes"):
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
            ds = parse_genotype_table(
                df,
                sample_column=sample_column,
                sep=sep,
                missing=missing,
                ploidy=ploidy,
            )
        self._log.debug(
            f"read {ds.sizes[DIM_SAMPLE]} samples, {ds.sizes[DIM_LOCUS]} loci from {path}"
        )
        return ds

    @check_types
    @doc(
        summary="""
            Read aligned sequences from one multi-FASTA file per gene. Each
            gene becomes a haploid locus whose alleles are the distinct
            haplotypes.
        """,
        returns="""
            A dataset with variables "sample_id", "locus_id", "locus_allele"
            and "call_genotype".
        """,
    )
    def read_sequences(
        self,
        paths: genotype_params.fasta_paths,
        seq_format: genotype_params.seq_format = genotype_params.seq_format_default,
    ) -> xr.Dataset:
        loci: Dict[str, Dict[str, str]] = dict()
        for locus, path in paths.items():
            seqs: Dict[str, str] = dict()
            for record in SeqIO.parse(path, seq_format):
                if record.id in seqs:
                    raise InvalidInput(
                        f"Duplicate sequence identifier {record.id!r} in {path}."
                    )
                seqs[record.id] = str(record.seq)
            self._log.debug(f"read {len(seqs)} sequences for locus {locus!r}")
            loci[locus] = seqs
        return parse_sequence_loci(loci)

    @check_types
    @doc(
        summary="""
            Read a comma-separated strata file, with one row per sample and
            one column per stratification level, aligned to the samples of a
            genotype dataset.
        """,
        returns="A stratification scheme in dataset sample order.",
    )
    def read_strata(
        self,
        path: base_params.path,
        ds: base_params.ds,
        sample_column: base_params.sample_column = None,
        active: genotype_params.active = None,
    ) -> StratificationScheme:
        # Only empty cells are missing, "NA" is a valid label.
        df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])
        if sample_column is None:
            sample_column = str(df.columns[0])
        strata = align_strata(ds, df, sample_column=sample_column, active=active)
        self._log.debug(f"read strata {strata!r} from {path}")
        return strata
