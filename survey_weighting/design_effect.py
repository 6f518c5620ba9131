"""Kish design effect, effective sample size and margin of error of a weight vector."""

import collections
import logging

import numpy as np
import pandas as pd
from scipy.stats import norm

from survey_weighting.errors import ConfigurationError

log = logging.getLogger(__name__)


DesignEffect = collections.namedtuple('DesignEffect', ['deff', 'n', 'ess', 'moe'])

# Published critical values, as used in survey reports
z_score_by_confidence_level = {
    0.90: 1.645,
    0.95: 1.96,
    0.99: 2.576,
    }


def z_score(confidence_level = 0.95):
    """Two-sided standard normal quantile, 1.96 for a 95% confidence level.

    The usual confidence levels get their published critical value, the others the exact quantile.
    """
    if not 0 < confidence_level < 1:
        raise ConfigurationError(f"confidence_level should be in ]0, 1[, not {confidence_level}")
    if confidence_level in z_score_by_confidence_level:
        return z_score_by_confidence_level[confidence_level]
    return float(norm.ppf(0.5 + confidence_level / 2))


def compute_design_effect(weights, confidence_level = 0.95, percentage = False) -> DesignEffect:
    """Compute the Kish design effect of a weight vector.

    The margin of error is the conservative one of a proportion (p = 0.5) estimated on the
    effective sample size.

    Args:
        weights (array-like): Weights
        confidence_level (float, optional): Confidence level of the margin of error. Defaults to 0.95.
        percentage (bool, optional): Express the margin of error in percentage points instead of a fraction. Defaults to False.

    Returns:
        DesignEffect: deff, n, ess and moe
    """
    weights = np.asarray(weights, dtype = float)
    if weights.ndim != 1:
        raise ConfigurationError("The design effect needs a one dimensional weight vector")
    n = len(weights)
    if n < 2:
        raise ConfigurationError(f"The design effect needs at least two weights, got {n}")
    if np.isnan(weights).any():
        raise ConfigurationError("Cannot compute a design effect with missing weights")
    if (weights < 0).any():
        raise ConfigurationError("Cannot compute a design effect with negative weights")
    weight_sum = weights.sum()
    if not weight_sum > 0:
        raise ConfigurationError("Cannot compute a design effect when all weights are zero")

    if (weights == weights[0]).all():
        deff = 1.0
    else:
        # Cauchy-Schwarz: deff >= 1, up to rounding
        deff = max(n * np.square(weights).sum() / weight_sum ** 2, 1.0)
    ess = n / deff
    moe = z_score(confidence_level) * np.sqrt(0.25 / ess)
    if percentage:
        moe = 100 * moe
    return DesignEffect(deff = float(deff), n = n, ess = float(ess), moe = float(moe))


def design_effect_by_group(data, weight_column, by, confidence_level = 0.95, percentage = False) -> pd.DataFrame:
    """Design effects of the whole sample and of each group of a column.

    Args:
        data (pd.DataFrame): Survey data
        weight_column (str): Weight column
        by (str): Grouping column
        confidence_level (float, optional): Confidence level of the margins of error. Defaults to 0.95.
        percentage (bool, optional): Margins of error in percentage points. Defaults to False.

    Returns:
        pd.DataFrame: deff, n, ess and moe by group, the whole sample in the `total` row
    """
    for column in [weight_column, by]:
        if column not in data.columns:
            raise ConfigurationError(f"Unknown column {column}")

    design_effect_by_name = collections.OrderedDict()
    for group, group_data in data.groupby(by, sort = True, observed = True):
        if len(group_data) < 2:
            log.info(f"Skipping group {group} of {by}: {len(group_data)} observation(s)")
            continue
        design_effect_by_name[group] = compute_design_effect(
            group_data[weight_column], confidence_level = confidence_level, percentage = percentage)
    design_effect_by_name['total'] = compute_design_effect(
        data[weight_column], confidence_level = confidence_level, percentage = percentage)

    return pd.DataFrame.from_dict(
        dict((name, design_effect._asdict()) for name, design_effect in design_effect_by_name.items()),
        orient = 'index',
        )
