"""Parameter definitions for genotype and sequence loading functions."""

from typing import Mapping, Optional, Sequence

from typing_extensions import Annotated, TypeAlias

sep: TypeAlias = Annotated[
    str,
    'String separating the allele codes within a genotype, e.g., "/" for "120/124".',
]

sep_default: sep = "/"

missing: TypeAlias = Annotated[
    Sequence[str],
    "Genotype or allele codes to be treated as missing data.",
]

missing_default: missing = ("", "NA", "0", "-")

ploidy: TypeAlias = Annotated[
    Optional[int],
    """
    Expected number of alleles per genotype. If not provided, this is
    inferred from the first non-missing genotype.
    """,
]

fasta_paths: TypeAlias = Annotated[
    Mapping[str, str],
    """
    Mapping from locus (gene) name to the path of a multi-FASTA file
    holding one sequence per sample for that locus.
    """,
]

seq_format: TypeAlias = Annotated[
    str,
    'Sequence file format, passed through to Biopython `SeqIO.parse()`.',
]

seq_format_default: seq_format = "fasta"

active: TypeAlias = Annotated[
    Optional[Sequence[str]],
    """
    Stratification levels to group by, ordered from outer to inner. If not
    provided, the first level is used.
    """,
]
