"""Raking: adjusts weights by iterative proportional fitting to match target margins."""

import collections
import collections.abc
import logging

import numpy as np

from survey_weighting.errors import ConfigurationError, NonConvergenceError, ZeroMassError
from survey_weighting.frames import CategoricalFrame
from survey_weighting.targets import TargetTable

log = logging.getLogger(__name__)


class ConvergenceState(object):
    """Deviation between weighted sample proportions and targets, cycle after cycle."""
    converged = False
    iterations = 0
    relative = False
    tolerance = None

    def __init__(self, tolerance, relative = False):
        self.tolerance = tolerance
        self.relative = relative
        self.history = []
        self.deviation_by_target = collections.OrderedDict()

    def __repr__(self):
        return (
            f"<ConvergenceState: {'converged' if self.converged else 'not converged'} after {self.iterations} iterations, "
            f"max deviation {self.max_deviation:.3g}, tolerance {self.tolerance:.3g}>"
            )

    @property
    def max_deviation(self):
        if not self.history:
            return np.inf
        return self.history[-1]

    def update(self, deviation_by_target):
        self.iterations += 1
        self.deviation_by_target = collections.OrderedDict(deviation_by_target)
        max_deviation = max(self.deviation_by_target.values())
        self.history.append(max_deviation)
        self.converged = max_deviation == 0 or max_deviation < self.tolerance
        return self.converged


def check_targets(targets) -> list:
    """List the targets in raking order and check they share the same total."""
    if isinstance(targets, TargetTable):
        targets = [targets]
    elif isinstance(targets, collections.abc.Mapping):
        targets = list(targets.values())
    else:
        targets = list(targets)

    if not targets:
        raise ConfigurationError("Raking requires at least one target")
    for target in targets:
        if not isinstance(target, TargetTable):
            raise ConfigurationError(f"Expected a TargetTable, got {type(target)}")

    names = [target.name for target in targets]
    duplicated_names = sorted(set(name for name in names if names.count(name) > 1))
    if duplicated_names:
        raise ConfigurationError(f"Targets {duplicated_names} are given more than once")

    totals = set(target.total for target in targets)
    if len(totals) > 1:
        raise ConfigurationError(
            f"All targets should sum up to the same total, got {dict(zip(names, [target.total for target in targets]))}"
            )
    return targets


def match_categories(frame, targets) -> list:
    """Category code of every row for each target.

    Sample and target label sets should be equal: a label missing on either side is a
    configuration error.
    """
    codes_list = []
    for target in targets:
        sample_categories = frame.categories(target.name)
        target_categories = target.categories
        sample_set = set(sample_categories)
        target_set = set(target_categories)
        if sample_set != target_set:
            missing_in_sample = [category for category in target_categories if category not in sample_set]
            missing_in_target = [category for category in sample_categories if category not in target_set]
            raise ConfigurationError(
                f"Target {target.name}: categories do not match the sample. "
                f"In the target but not in the sample: {missing_in_sample}. "
                f"In the sample but not in the target: {missing_in_target}."
                )
        codes_list.append(frame.codes(target.name, target_categories))
    return codes_list


def adjust_weights(weights, codes, target, epsilon = 1e-12):
    """Rescale in place the weights of each category of `target` to its target proportion."""
    target_values = target.values
    mass = np.bincount(codes, weights = weights, minlength = len(target_values))
    is_empty = mass <= epsilon
    is_unreachable = is_empty & (target_values > 0)
    if is_unreachable.any():
        position = int(np.flatnonzero(is_unreachable)[0])
        raise ZeroMassError(
            target.name,
            target.categories[position],
            float(target_values[position]),
            current_mass = float(mass[position]),
            )

    current = target.total * mass / mass.sum()
    factors = np.ones(len(target_values))
    factors[~is_empty] = target_values[~is_empty] / current[~is_empty]
    weights *= factors[codes]


def deviation(weights, codes, target, relative = False):
    """Maximum deviation between the weighted sample proportions and the target proportions."""
    target_values = target.values
    mass = np.bincount(codes, weights = weights, minlength = len(target_values))
    current = target.total * mass / mass.sum()
    differences = np.abs(current - target_values)
    if relative:
        nonzero = target_values > 0
        differences[nonzero] = differences[nonzero] / target_values[nonzero]
    return float(differences.max())


def rake_with_diagnostics(sample, targets, base_weight = None, tolerance = 1e-6, max_iterations = 1000,
        epsilon = 1e-12, relative = False, population_total = None):
    """Rake weights to targets and return the convergence state with them.

    Args:
        sample (pd.DataFrame or CategoricalFrame): Survey data, raking variables without missing values
        targets (list or dict): TargetTable objects, raked in the given order
        base_weight (str, optional): Base weight column. Defaults to None to start from uniform weights.
        tolerance (float, optional): Maximum deviation from the targets at convergence, on the targets scale. Defaults to 1e-6.
        max_iterations (int, optional): Maximum number of cycles over all the targets. Defaults to 1000.
        epsilon (float, optional): Weighted mass under which a category is considered empty. Defaults to 1e-12.
        relative (bool, optional): Measure deviations relatively to the (nonzero) targets. Defaults to False.
        population_total (float, optional): Scale the raked weights to this total. Defaults to None to keep the base weights total.

    Raises:
        ConfigurationError: Invalid parameters, data or targets, detected before any iteration
        ZeroMassError: A category with a nonzero target has no weighted mass
        NonConvergenceError: Tolerance not met after max_iterations cycles. The last iterate is attached.

    Returns:
        np.array: Raked weights, aligned with the sample rows
        ConvergenceState: Convergence diagnostics
    """
    frame = CategoricalFrame(sample)
    targets = check_targets(targets)
    if not tolerance > 0:
        raise ConfigurationError(f"tolerance should be > 0, not {tolerance}")
    if not isinstance(max_iterations, (int, np.integer)) or max_iterations < 1:
        raise ConfigurationError(f"max_iterations should be an integer >= 1, not {max_iterations}")
    if epsilon is None or epsilon < 0:
        raise ConfigurationError(f"epsilon should be >= 0, not {epsilon}")
    if population_total is not None and not population_total > 0:
        raise ConfigurationError(f"population_total should be > 0, not {population_total}")
    if len(frame) == 0:
        raise ConfigurationError("Cannot rake an empty sample")

    frame.check_complete([target.name for target in targets])
    weights = frame.weights(base_weight)
    codes_list = match_categories(frame, targets)

    convergence = ConvergenceState(tolerance, relative = relative)
    while convergence.iterations < max_iterations:
        for target, codes in zip(targets, codes_list):
            adjust_weights(weights, codes, target, epsilon = epsilon)

        convergence.update(
            (target.name, deviation(weights, codes, target, relative = relative))
            for target, codes in zip(targets, codes_list)
            )
        log.debug(f"Raking iteration {convergence.iterations}: max deviation {convergence.max_deviation:.3g}")
        if convergence.converged:
            break

    if not convergence.converged:
        last_iterate = weights.copy()
        if population_total is not None:
            last_iterate *= population_total / last_iterate.sum()
        raise NonConvergenceError(
            last_iterate,
            convergence.max_deviation,
            tolerance,
            convergence.iterations,
            convergence = convergence,
            )

    log.info(
        f"Raking on {[target.name for target in targets]} converged after {convergence.iterations} iterations "
        f"(max deviation {convergence.max_deviation:.3g})"
        )
    zero_weight_observations = int((weights == 0).sum())
    if zero_weight_observations > 0:
        log.info(f"{zero_weight_observations} observations have a zero raked weight")

    if population_total is not None:
        weights *= population_total / weights.sum()

    return weights, convergence


def rake(sample, targets, base_weight = None, tolerance = 1e-6, max_iterations = 1000, epsilon = 1e-12,
        relative = False, population_total = None):
    """Rake weights to targets by iterative proportional fitting.

    See `rake_with_diagnostics` for the arguments and the errors.

    Returns:
        np.array: Raked weights, aligned with the sample rows
    """
    weights, _ = rake_with_diagnostics(
        sample,
        targets,
        base_weight = base_weight,
        tolerance = tolerance,
        max_iterations = max_iterations,
        epsilon = epsilon,
        relative = relative,
        population_total = population_total,
        )
    return weights
