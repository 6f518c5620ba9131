"""Errors raised while building targets, raking, trimming or evaluating weights."""


class WeightingError(Exception):
    """Base class of the survey weighting errors."""


class ConfigurationError(WeightingError, ValueError):
    """The caller asked for something that cannot be computed as configured."""


class ZeroMassError(WeightingError):
    """A target category has a nonzero target but no weighted mass in the sample."""

    def __init__(self, target, category, target_proportion, current_mass = 0.0):
        self.target = target
        self.category = category
        self.target_proportion = target_proportion
        self.current_mass = current_mass
        super().__init__(
            f"Target {target!r}: category {category!r} has a target of {target_proportion} "
            f"but a weighted mass of {current_mass} in the sample. Raking cannot reach it."
            )


class NonConvergenceError(WeightingError):
    """The iteration cap was reached before the tolerance was met.

    The last iterate is kept in ``weights`` so that the caller can decide to use it.
    """

    def __init__(self, weights, max_deviation, tolerance, iterations, convergence = None):
        self.weights = weights
        self.max_deviation = max_deviation
        self.tolerance = tolerance
        self.iterations = iterations
        self.convergence = convergence
        super().__init__(
            f"Raking did not converge after {iterations} iterations: "
            f"achieved a maximum deviation of {max_deviation:.3g} for a requested tolerance of {tolerance:.3g}"
            )
