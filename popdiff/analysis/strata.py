import hashlib
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import xarray as xr

from ..util import DIM_SAMPLE, InvalidInput


class StratificationScheme:
    """Immutable assignment of samples to hierarchical strata.

    Rows are aligned by position with the samples of a genotype dataset,
    columns are the stratification levels (e.g., "Country", "Breed"). The
    active levels, ordered from outer to inner, determine the grouping
    used by statistics. The grouping label of a sample is the value of
    each active level joined with an underscore.

    """

    def __init__(
        self,
        table: pd.DataFrame,
        active: Optional[Union[str, Sequence[str]]] = None,
    ):
        if table.shape[1] == 0:
            raise InvalidInput("Stratification table has no levels.")
        if table.shape[0] == 0:
            raise InvalidInput("Stratification table has no samples.")
        if table.isna().any().any():
            loc_missing = table.isna().any(axis=1)
            missing = table.index[loc_missing].to_list()
            raise InvalidInput(f"Missing stratum labels for samples: {missing}")

        # Take a copy, so later changes to the caller's dataframe
        # cannot leak in.
        table = table.astype(str).copy()
        table.columns = [str(c) for c in table.columns]
        self._table = table
        self._levels: Tuple[str, ...] = tuple(table.columns)

        if active is None:
            active = (self._levels[0],)
        elif isinstance(active, str):
            active = (active,)
        else:
            active = tuple(active)
        if len(active) == 0:
            raise InvalidInput("At least one active stratification level is required.")
        for level in active:
            if level not in self._levels:
                raise InvalidInput(
                    f"Unknown stratification level {level!r}; expected one of {list(self._levels)}."
                )
        self._active: Tuple[str, ...] = active

        labels = table[active[0]].to_numpy(dtype=object)
        for level in active[1:]:
            labels = labels + "_" + table[level].to_numpy(dtype=object)
        labels = labels.astype(str)
        groups, codes = np.unique(labels, return_inverse=True)
        labels.setflags(write=False)
        codes.setflags(write=False)
        self._labels = labels
        self._codes = codes
        self._groups: Tuple[str, ...] = tuple(str(g) for g in groups)

    def __len__(self):
        return self._table.shape[0]

    def __repr__(self):
        return (
            f"<StratificationScheme levels={list(self._levels)} "
            f"active={list(self._active)} samples={len(self)} "
            f"groups={len(self._groups)}>"
        )

    @property
    def levels(self) -> Tuple[str, ...]:
        return self._levels

    @property
    def active(self) -> Tuple[str, ...]:
        return self._active

    @property
    def n_samples(self) -> int:
        return len(self)

    @property
    def sample_ids(self) -> np.ndarray:
        return self._table.index.to_numpy(dtype=str)

    @property
    def labels(self) -> np.ndarray:
        """Active grouping label for each sample (read-only)."""
        return self._labels

    @property
    def codes(self) -> np.ndarray:
        """Index into `groups` for each sample (read-only)."""
        return self._codes

    @property
    def groups(self) -> Tuple[str, ...]:
        """Sorted distinct active grouping labels."""
        return self._groups

    @property
    def table(self) -> pd.DataFrame:
        return self._table.copy()

    def group_sizes(self) -> pd.Series:
        counts = np.bincount(self._codes, minlength=len(self._groups))
        return pd.Series(counts, index=list(self._groups), name="size")

    def group_indices(self) -> Dict[str, np.ndarray]:
        return {
            group: np.nonzero(self._codes == i)[0]
            for i, group in enumerate(self._groups)
        }

    def level_labels(self, level: str) -> np.ndarray:
        if level not in self._levels:
            raise InvalidInput(f"Unknown stratification level {level!r}.")
        return self._table[level].to_numpy(dtype=str)

    def set_active(self, active: Union[str, Sequence[str]]) -> "StratificationScheme":
        """Return a new scheme grouping by different levels."""
        return StratificationScheme(self._table, active=active)

    def take(self, indices) -> "StratificationScheme":
        """Return a new scheme with rows selected by position. Repeated
        indices produce repeated rows."""
        indices = np.asarray(indices, dtype=np.int64)
        return StratificationScheme(self._table.iloc[indices], active=self._active)

    def permute(self, rng: np.random.Generator) -> "StratificationScheme":
        """Return a new scheme with the stratum rows shuffled across samples.
        Sample identifiers keep their positions, all levels move together."""
        perm = rng.permutation(len(self))
        shuffled = self._table.iloc[perm]
        shuffled.index = self._table.index
        return StratificationScheme(shuffled, active=self._active)

    def hash(self) -> str:
        h = hashlib.md5()
        h.update("\t".join(self._active).encode())
        h.update("\t".join(self._labels.tolist()).encode())
        for level in self._levels:
            h.update(level.encode())
            h.update("\t".join(self._table[level].tolist()).encode())
        return h.hexdigest()


def check_aligned(ds: xr.Dataset, strata: StratificationScheme):
    n_samples = ds.sizes[DIM_SAMPLE]
    if len(strata) != n_samples:
        raise InvalidInput(
            f"Stratification has {len(strata)} samples but dataset has {n_samples}."
        )


def align_strata(
    ds: xr.Dataset,
    df: pd.DataFrame,
    sample_column: str = "sample_id",
    levels: Optional[Sequence[str]] = None,
    active: Optional[Union[str, Sequence[str]]] = None,
) -> StratificationScheme:
    """Build a stratification scheme with rows in dataset sample order."""
    if sample_column not in df.columns:
        raise InvalidInput(f"Strata table has no {sample_column!r} column.")
    df = df.copy()
    df[sample_column] = df[sample_column].astype(str)
    loc_dup = df[sample_column].duplicated()
    if loc_dup.any():
        dups = sorted(set(df.loc[loc_dup, sample_column]))
        raise InvalidInput(f"Duplicate sample identifiers in strata table: {dups}")
    df = df.set_index(sample_column)

    if levels is None:
        levels = list(df.columns)
    else:
        levels = list(levels)
        unknown = [c for c in levels if c not in df.columns]
        if unknown:
            raise InvalidInput(f"Strata table has no columns {unknown}.")

    sample_ids = ds["sample_id"].values.astype(str)
    missing = [s for s in sample_ids if s not in df.index]
    if missing:
        raise InvalidInput(f"No strata rows for samples: {missing}")

    table = df.loc[sample_ids, levels]
    return StratificationScheme(table, active=active)
