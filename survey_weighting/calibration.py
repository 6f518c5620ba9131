import collections
import logging

import numpy
import pandas as pd

from survey_weighting.config import get_parameters
from survey_weighting.design_effect import compute_design_effect
from survey_weighting.errors import ConfigurationError, NonConvergenceError
from survey_weighting.frames import CategoricalFrame
from survey_weighting.raking import check_targets, rake_with_diagnostics
from survey_weighting.targets import TargetTable
from survey_weighting.trimming import trim_weights


log = logging.getLogger(__name__)


trimming_bound_names = ['lower_bound', 'upper_bound', 'lower_quantile', 'upper_quantile']


class Calibration(object):
    """An object to calibrate the weights of a survey sample on raking targets.

    The weights are raked, then trimmed when trimming bounds are set in the parameters.
    """
    base_weight = None
    convergence = None
    initial_weight = None
    parameters = None
    raked_weight = None
    sample = None
    targets = None
    weight = None

    def __init__(self, sample, targets = None, base_weight = None, parameters = None, config_files_directory = None):
        self.sample = CategoricalFrame(sample)
        self.base_weight = base_weight
        self.parameters = get_parameters(config_files_directory = config_files_directory)
        if parameters:
            unknown_parameters = set(parameters).difference(self.parameters)
            if unknown_parameters:
                raise ConfigurationError(f"Unknown calibration parameters {sorted(unknown_parameters)}")
            self.parameters.update(parameters)

        self.initial_weight = self.sample.weights(base_weight)
        self.weight = self.initial_weight.copy()
        self.targets = collections.OrderedDict()
        if targets:
            for target in check_targets(targets):
                self.set_target(target)

    def set_target(self, target: TargetTable):
        """Add a target, or replace the target of the same variable."""
        if not isinstance(target, TargetTable):
            raise ConfigurationError(f"Expected a TargetTable, got {type(target)}")
        if target.name in self.targets:
            log.debug(f"Replacing target {target.name}")
        self.targets[target.name] = target

    def get_raking_parameters(self) -> dict:
        return dict(
            (name, self.parameters[name])
            for name in ['tolerance', 'max_iterations', 'epsilon', 'relative', 'population_total']
            )

    def get_trimming_parameters(self) -> dict:
        trimming_parameters = dict(
            (name, self.parameters[name])
            for name in trimming_bound_names
            if self.parameters.get(name) is not None
            )
        if trimming_parameters:
            trimming_parameters['preserve_total'] = self.parameters['preserve_total']
        return trimming_parameters

    def calibrate(self):
        """Rake and trim the weights.

        Returns:
            numpy.array: calibrated weights
        """
        if not self.targets:
            raise ConfigurationError("Targets should be set before calibrating")

        try:
            raked_weight, convergence = rake_with_diagnostics(
                self.sample,
                list(self.targets.values()),
                base_weight = self.base_weight,
                **self.get_raking_parameters(),
                )
        except NonConvergenceError as error:
            if not self.parameters['accept_nonconvergence']:
                raise
            log.warning(f"{error}. Using the last iterate as requested.")
            raked_weight, convergence = error.weights, error.convergence

        self.convergence = convergence
        self.raked_weight = raked_weight
        trimming_parameters = self.get_trimming_parameters()
        if trimming_parameters:
            self.weight = trim_weights(raked_weight, **trimming_parameters)
        else:
            self.weight = raked_weight.copy()

        return self.weight

    def reset(self):
        """Reset the calibration to its initial state."""
        self.weight = self.initial_weight.copy()
        self.raked_weight = None
        self.convergence = None

    def design_effect(self, initial = False, confidence_level = 0.95, percentage = False):
        weight = self.initial_weight if initial else self.weight
        return compute_design_effect(weight, confidence_level = confidence_level, percentage = percentage)

    def summary(self) -> pd.DataFrame:
        """Summarize margins: initial, actual and target proportions by variable and category."""
        rows = []
        for name, target in self.targets.items():
            margin_by_type = dict()
            for margin_type, weight in [('initial', self.initial_weight), ('actual', self.weight)]:
                distribution = self.sample.weighted_distribution(name, weights = weight, total = target.total)
                margin_by_type[margin_type] = dict(zip(distribution.index.tolist(), distribution.tolist()))
            for category, target_value in target.items():
                rows.append((
                    name,
                    category,
                    margin_by_type['initial'].get(category, numpy.nan),
                    margin_by_type['actual'].get(category, numpy.nan),
                    target_value,
                    ))
        margins_df = pd.DataFrame(rows, columns = ['variable', 'category', 'initial', 'actual', 'target'])
        return margins_df.set_index(['variable', 'category'])
