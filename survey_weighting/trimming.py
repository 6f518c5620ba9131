"""Weight trimming: caps extreme weights by quantile or absolute bounds."""

import logging

import numpy as np

from survey_weighting.errors import ConfigurationError

log = logging.getLogger(__name__)


def resolve_bounds(weights, lower_bound = None, upper_bound = None, lower_quantile = None, upper_quantile = None):
    """Absolute trimming bounds, from either the absolute or the quantile bounds.

    Returns:
        tuple: (lower, upper) bounds, -inf or inf for a side without a bound
    """
    absolute_mode = lower_bound is not None or upper_bound is not None
    quantile_mode = lower_quantile is not None or upper_quantile is not None
    if absolute_mode and quantile_mode:
        raise ConfigurationError("Trimming takes either absolute bounds or quantile bounds, not both")
    if not (absolute_mode or quantile_mode):
        raise ConfigurationError("Trimming needs absolute bounds or quantile bounds")

    if quantile_mode:
        for name, quantile in [('lower_quantile', lower_quantile), ('upper_quantile', upper_quantile)]:
            if quantile is not None and not 0 <= quantile <= 1:
                raise ConfigurationError(f"{name} should be in [0, 1], not {quantile}")
        lower = np.quantile(weights, lower_quantile) if lower_quantile is not None else -np.inf
        upper = np.quantile(weights, upper_quantile) if upper_quantile is not None else np.inf
    else:
        lower = float(lower_bound) if lower_bound is not None else -np.inf
        upper = float(upper_bound) if upper_bound is not None else np.inf

    if lower > upper:
        raise ConfigurationError(f"Lower trimming bound {lower} is greater than upper trimming bound {upper}")
    return float(lower), float(upper)


def trim_weights(weights, lower_bound = None, upper_bound = None, lower_quantile = None, upper_quantile = None,
        preserve_total = False, max_iterations = 100, tolerance = 1e-10):
    """Clamp weights to bounds given either as absolute values or as quantiles of the weights.

    Args:
        weights (array-like): Weights to trim
        lower_bound (float, optional): Lowest admissible weight. Defaults to None.
        upper_bound (float, optional): Highest admissible weight. Defaults to None.
        lower_quantile (float, optional): Quantile of the weights used as lowest admissible weight. Defaults to None.
        upper_quantile (float, optional): Quantile of the weights used as highest admissible weight. Defaults to None.
        preserve_total (bool, optional): Redistribute the trimmed mass among the weights that are not at a bound. Defaults to False.
        max_iterations (int, optional): Maximum number of clamp and redistribute passes when preserving the total. Defaults to 100.
        tolerance (float, optional): Relative precision on the preserved total. Defaults to 1e-10.

    Returns:
        np.array: Trimmed weights
    """
    weights = np.array(weights, dtype = float)
    if weights.ndim != 1 or len(weights) == 0:
        raise ConfigurationError("Trimming needs a non empty one dimensional weight vector")
    if np.isnan(weights).any():
        raise ConfigurationError("Cannot trim weights with missing values")

    lower, upper = resolve_bounds(
        weights,
        lower_bound = lower_bound,
        upper_bound = upper_bound,
        lower_quantile = lower_quantile,
        upper_quantile = upper_quantile,
        )
    trimmed = np.clip(weights, lower, upper)
    log.info(
        f"Trimming weights to [{lower:.6g}, {upper:.6g}]: "
        f"{int((weights < lower).sum())} raised, {int((weights > upper).sum())} lowered"
        )
    if not preserve_total:
        return trimmed

    initial_total = weights.sum()
    for _ in range(max_iterations):
        excess = initial_total - trimmed.sum()
        if abs(excess) <= tolerance * abs(initial_total):
            return trimmed
        is_free = (trimmed > lower) & (trimmed < upper)
        free_total = trimmed[is_free].sum()
        if not free_total > 0:
            raise ConfigurationError(
                f"Cannot preserve the weights total: {excess:.6g} to redistribute but every weight is at a bound"
                )
        trimmed[is_free] *= 1 + excess / free_total
        trimmed = np.clip(trimmed, lower, upper)

    excess = initial_total - trimmed.sum()
    if abs(excess) > tolerance * abs(initial_total):
        raise ConfigurationError(
            f"Cannot preserve the weights total within {max_iterations} redistributions: {excess:.6g} left"
            )
    return trimmed
