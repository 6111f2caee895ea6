import warnings

import numpy as np
import pandas as pd

from ..util import InvalidInput, value_error
from .resample_funcs import ResampleDistribution

ALTERNATIVES = ("greater", "less", "two-sided")


def _label_values(dist: ResampleDistribution):
    if len(dist) == 0:
        raise InvalidInput("Cannot summarize an empty distribution.")
    values = dist.values.reshape(len(dist), -1)
    observed = dist.observed.values.reshape(-1)
    if dist.labels is None:
        labels = ["global"]
    else:
        labels = list(dist.labels)
    return labels, observed, values


def summarize_distribution(
    dist: ResampleDistribution, confidence_level: float = 0.95
) -> pd.DataFrame:
    """Summarize trial values by their mean and a two-sided percentile
    interval, independently for each label. Trials recorded as NaN are
    excluded."""
    if not 0 < confidence_level < 1:
        value_error("confidence_level", confidence_level, "a number between 0 and 1")
    labels, observed, values = _label_values(dist)
    alpha = (1 - confidence_level) / 2
    n_valid = np.sum(~np.isnan(values), axis=0)
    with warnings.catch_warnings():
        # Labels with no valid trials summarize to NaN.
        warnings.simplefilter("ignore", category=RuntimeWarning)
        mean = np.nanmean(values, axis=0)
        ci_low = np.nanquantile(values, alpha, axis=0)
        ci_upp = np.nanquantile(values, 1 - alpha, axis=0)
    return pd.DataFrame(
        {
            "statistic": dist.statistic,
            "label": labels,
            "observed": observed,
            "mean": mean,
            "ci_low": ci_low,
            "ci_upp": ci_upp,
            "n": n_valid,
        }
    )


def permutation_pvalues(
    dist: ResampleDistribution, alternative="greater"
) -> pd.DataFrame:
    """P-values of the observed values against a permutation null
    distribution, using the (1 + hits) / (1 + n) estimator.

    `alternative` may be a single value, or one value per label.

    """
    labels, observed, values = _label_values(dist)
    if isinstance(alternative, str):
        alternative = [alternative] * len(labels)
    if len(alternative) != len(labels):
        raise InvalidInput(
            f"Expected {len(labels)} alternatives, one per label; found {len(alternative)}."
        )
    for alt in alternative:
        if alt not in ALTERNATIVES:
            raise InvalidInput(f"Unknown alternative {alt!r}; expected one of {ALTERNATIVES}.")

    valid = ~np.isnan(values)
    n_valid = valid.sum(axis=0)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=RuntimeWarning)
        null_mean = np.nanmean(values, axis=0)
    p_values = np.full(len(labels), np.nan)
    for j, alt in enumerate(alternative):
        null = values[valid[:, j], j]
        obs = observed[j]
        if np.isnan(obs):
            continue
        if alt == "greater":
            hits = np.sum(null >= obs)
        elif alt == "less":
            hits = np.sum(null <= obs)
        else:
            hits = np.sum(np.abs(null - null_mean[j]) >= np.abs(obs - null_mean[j]))
        p_values[j] = (1 + hits) / (1 + n_valid[j])

    return pd.DataFrame(
        {
            "statistic": dist.statistic,
            "label": labels,
            "observed": observed,
            "null_mean": null_mean,
            "p_value": p_values,
            "alternative": list(alternative),
            "n": n_valid,
        }
    )
