from enum import Enum
from typing import Union

import xarray as xr

from ..util import InvalidInput
from .amova_funcs import compute_amova
from .stat_funcs import (
    StatisticResult,
    compute_d_jost,
    compute_fst_wc,
    compute_gst_hedrick,
    compute_gst_nei,
)
from .strata import StratificationScheme


class Statistic(str, Enum):
    """Differentiation statistics which can be computed for a dataset
    grouped by a stratification scheme."""

    GST_NEI = "Gst_Nei"
    GST_HEDRICK = "Gst_Hedrick"
    D_JOST = "D_Jost"
    FST_WC = "Fst_WC"
    AMOVA = "AMOVA"

    @classmethod
    def parse(cls, value: Union[str, "Statistic"]) -> "Statistic":
        if isinstance(value, Statistic):
            return value
        for member in cls:
            if value.lower() in (member.value.lower(), member.name.lower()):
                return member
        raise InvalidInput(
            f"Unknown statistic {value!r}; expected one of {[m.value for m in cls]}."
        )

    def compute(
        self,
        ds: xr.Dataset,
        strata: StratificationScheme,
        per_locus: bool = False,
    ) -> StatisticResult:
        return _COMPUTE[self](ds, strata, per_locus=per_locus)


_COMPUTE = {
    Statistic.GST_NEI: compute_gst_nei,
    Statistic.GST_HEDRICK: compute_gst_hedrick,
    Statistic.D_JOST: compute_d_jost,
    Statistic.FST_WC: compute_fst_wc,
    Statistic.AMOVA: compute_amova,
}
