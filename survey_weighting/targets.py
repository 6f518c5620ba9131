"""Raking targets: normalised marginal or joint distributions built from benchmark data."""

import collections
import logging

import numpy as np
import pandas as pd

from survey_weighting.errors import ConfigurationError
from survey_weighting.frames import CategoricalFrame, split_variable_spec, variable_separator

log = logging.getLogger(__name__)


frequency_column = 'Freq'


class TargetTable(object):
    """Target distribution of one, possibly compound, raking variable.

    The proportions sum to `total` (100 for percentages, 1 for fractions).
    A table is immutable: accessors return copies.
    """
    name = None
    total = None
    variables = None

    def __init__(self, name, proportions, total = 100.0):
        self.variables = split_variable_spec(name)
        self.name = name
        if total is None or not total > 0:
            raise ConfigurationError(f"Target {name}: total should be positive, not {total}")
        self.total = float(total)

        items = list(proportions.items())
        if not items:
            raise ConfigurationError(f"Target {name} has no category")
        labels = [label for label, _ in items]
        if len(set(labels)) != len(labels):
            raise ConfigurationError(f"Target {name} has duplicated categories: {labels}")
        if len(self.variables) > 1:
            for label in labels:
                if not isinstance(label, tuple) or len(label) != len(self.variables):
                    raise ConfigurationError(
                        f"Target {name}: category {label!r} should be a tuple of {len(self.variables)} values"
                        )

        values = np.array([value for _, value in items], dtype = float)
        if np.isnan(values).any():
            raise ConfigurationError(f"Target {name} has missing proportions")
        if (values < 0).any():
            raise ConfigurationError(f"Target {name} has negative proportions")
        if not np.isclose(values.sum(), self.total, rtol = 1e-9, atol = 0):
            raise ConfigurationError(
                f"Target {name} proportions sum up to {values.sum()} != {self.total}"
                )

        self._labels = tuple(labels)
        self._values = values
        self._values.setflags(write = False)

    def __repr__(self):
        return f"<TargetTable {self.name}: {dict(zip(self._labels, self._values.tolist()))}>"

    def __len__(self):
        return len(self._labels)

    def __getitem__(self, label):
        try:
            return float(self._values[self._labels.index(label)])
        except ValueError:
            raise KeyError(label) from None

    @property
    def categories(self) -> list:
        return list(self._labels)

    @property
    def values(self) -> np.ndarray:
        return self._values.copy()

    @property
    def proportions(self) -> pd.Series:
        index = pd.Index(self._labels, tupleize_cols = False, name = self.name)
        return pd.Series(self._values.copy(), index = index, name = frequency_column)

    def items(self):
        return zip(self._labels, self._values.tolist())

    def to_frame(self) -> pd.DataFrame:
        """One row per category: the variable columns and the `Freq` column."""
        if len(self.variables) == 1:
            rows = [(label, value) for label, value in self.items()]
        else:
            rows = [label + (value,) for label, value in self.items()]
        return pd.DataFrame(rows, columns = self.variables + [frequency_column])

    @classmethod
    def from_frame(cls, data_frame, total = 100.0):
        """Read back a table laid out as by `to_frame`."""
        if frequency_column not in data_frame.columns:
            raise ConfigurationError(f"A target frame needs a {frequency_column} column")
        variables = [column for column in data_frame.columns if column != frequency_column]
        if not variables:
            raise ConfigurationError("A target frame needs at least one variable column")
        if len(variables) == 1:
            labels = data_frame[variables[0]].tolist()
        else:
            labels = list(zip(*(data_frame[variable].tolist() for variable in variables)))
        proportions = collections.OrderedDict(zip(labels, data_frame[frequency_column].tolist()))
        return cls(variable_separator.join(variables), proportions, total = total)


def build_targets(benchmark, variable_specs, weight_column = None, total = 100.0) -> collections.OrderedDict:
    """Build raking targets from weighted benchmark data.

    Args:
        benchmark (pd.DataFrame): Benchmark data, one row per unit
        variable_specs (list): Variable names, or colon joined names (`'sex:education'`) for cross-classifications
        weight_column (str): Benchmark weight column. Mandatory: targets are never computed from unweighted counts
        total (float, optional): Sum of the proportions of each table. Defaults to 100.

    Returns:
        OrderedDict: TargetTable by variable spec, in the order of variable_specs
    """
    if weight_column is None:
        raise ConfigurationError(
            "A benchmark weight column is needed to build targets. Use a column of ones on purpose for unweighted benchmarks"
            )
    if isinstance(variable_specs, str):
        variable_specs = [variable_specs]
    if not variable_specs:
        raise ConfigurationError("At least one variable spec is needed to build targets")

    frame = CategoricalFrame(benchmark, weight_column = weight_column)
    weights = frame.weights()
    if not weights.sum() > 0:
        raise ConfigurationError(f"Benchmark weight column {weight_column} sums up to {weights.sum()}")

    targets = collections.OrderedDict()
    for variable_spec in variable_specs:
        if variable_spec in targets:
            raise ConfigurationError(f"Variable spec {variable_spec} is given twice")
        missing_value_observations = int(frame.labels(variable_spec).isna().sum())
        if missing_value_observations > 0:
            log.info(
                f"For variable {variable_spec}, {missing_value_observations} benchmark observations have a missing value. Not used in its target."
                )
        distribution = frame.weighted_distribution(variable_spec, weights = weights, total = total)
        empty_categories = distribution.index[distribution.to_numpy() == 0].tolist()
        if empty_categories:
            log.debug(f"Target {variable_spec} keeps empty categories {empty_categories}")
        targets[variable_spec] = TargetTable(variable_spec, distribution, total = total)
        log.debug(f"Built target {targets[variable_spec]}")

    return targets


def targets_from_dict(margins, total = 100.0, normalize = False) -> collections.OrderedDict:
    """Build target tables from `{variable_spec: {category: value}}` margins.

    Args:
        margins (dict): Values by category by variable spec, compound categories as tuples
        total (float, optional): Sum of the proportions of each table. Defaults to 100.
        normalize (bool, optional): Rescale counts or proportions of each table to `total`. Defaults to False.

    Returns:
        OrderedDict: TargetTable by variable spec
    """
    targets = collections.OrderedDict()
    for variable_spec, value_by_category in margins.items():
        if normalize:
            margin_sum = sum(value_by_category.values())
            if not margin_sum > 0:
                raise ConfigurationError(f"Margins of {variable_spec} sum up to {margin_sum}")
            value_by_category = collections.OrderedDict(
                (category, total * value / margin_sum)
                for category, value in value_by_category.items()
                )
        targets[variable_spec] = TargetTable(variable_spec, value_by_category, total = total)
    return targets
