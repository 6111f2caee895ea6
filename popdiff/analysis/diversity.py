from numpydoc_decorator import doc  # type: ignore

from ..util import check_types
from . import base_params, diversity_params
from .base import PopDiffBase
from .diversity_funcs import diversity_table, hwe_table


class PopDiffDiversity(PopDiffBase):
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
            Compute genetic diversity within each stratum at each locus.
        """,
        notes="""
            Expected heterozygosity is Nei's unbiased gene diversity. Observed
            heterozygosity is NaN for haploid data.
        """,
    )
    def diversity_stats(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
    ) -> diversity_params.df_diversity:
        with self._spinner(desc="Compute diversity"):
            df = diversity_table(ds, strata)
        return df

    @check_types
    @doc(
        summary="""
            Test for departure from Hardy-Weinberg equilibrium within each
            stratum at each locus.
        """,
        extended_summary="""
            The chi-square statistic is computed over all genotype classes
            formed from the observed alleles, with A(A - 1) / 2 degrees of
            freedom for A alleles. Loci with fewer than two observed alleles
            in a stratum are reported with NaN.
        """,
    )
    def hwe_test(
        self,
        ds: base_params.ds,
        strata: base_params.strata,
        nsim: diversity_params.nsim = 0,
        random_seed: base_params.random_seed = 42,
    ) -> diversity_params.df_hwe:
        with self._spinner(desc="Test Hardy-Weinberg equilibrium"):
            df = hwe_table(ds, strata, nsim=nsim, random_seed=random_seed)
        return df
