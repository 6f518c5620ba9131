"""Respondent level categorical data with a weight column."""

import itertools
import logging

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from survey_weighting.errors import ConfigurationError

log = logging.getLogger(__name__)


variable_separator = ':'


def split_variable_spec(variable_spec):
    """Split a variable spec into its columns: `'sex:education'` gives `['sex', 'education']`."""
    if not isinstance(variable_spec, str):
        raise ConfigurationError(f"A variable spec should be a string, not {variable_spec!r}")
    columns = [column.strip() for column in variable_spec.split(variable_separator)]
    if not all(columns):
        raise ConfigurationError(f"Invalid variable spec {variable_spec!r}: empty variable name")
    return columns


def is_categorical(series):
    return isinstance(series.dtype, pd.CategoricalDtype)


class CategoricalFrame(object):
    """A survey or benchmark data frame seen through its categorical variables.

    Category labels of a single variable are the cell values, those of a compound
    variable (`'sex:education'`) the tuples of the component values.

    The label set of a variable is the set of declared categories when every component
    column is a pandas categorical, the set of observed non missing labels otherwise.
    The wrapped data frame is never modified.
    """
    data = None
    weight_column = None

    def __init__(self, data, weight_column = None):
        if isinstance(data, CategoricalFrame):
            weight_column = weight_column if weight_column is not None else data.weight_column
            data = data.data
        if not isinstance(data, pd.DataFrame):
            raise ConfigurationError(f"Expected a pandas DataFrame, got {type(data)}")
        self.data = data
        self.weight_column = weight_column

    def __len__(self):
        return len(self.data)

    def __repr__(self):
        return f"<CategoricalFrame: {len(self.data)} rows, columns {list(self.data.columns)}, weight {self.weight_column}>"

    def check_columns(self, columns):
        unknown_columns = [column for column in columns if column not in self.data.columns]
        if unknown_columns:
            raise ConfigurationError(
                f"Unknown column(s) {unknown_columns}. Available columns are {list(self.data.columns)}"
                )

    def labels(self, variable_spec) -> pd.Series:
        """Category label of every row, NaN when a component is missing."""
        columns = split_variable_spec(variable_spec)
        self.check_columns(columns)
        if len(columns) == 1:
            return self.data[columns[0]]

        values = self.data[columns]
        is_missing = values.isna().any(axis = 1).to_numpy()
        labels = pd.Series(
            list(zip(*(values[column].tolist() for column in columns))),
            index = self.data.index,
            dtype = object,
            name = variable_spec,
            )
        labels[is_missing] = np.nan
        return labels

    def categories(self, variable_spec) -> list:
        """Label set of a variable, in a stable order."""
        columns = split_variable_spec(variable_spec)
        self.check_columns(columns)
        series_list = [self.data[column] for column in columns]
        if all(is_categorical(series) for series in series_list):
            categories_by_column = [list(series.cat.categories) for series in series_list]
            if len(columns) == 1:
                return categories_by_column[0]
            return list(itertools.product(*categories_by_column))

        labels = self.labels(variable_spec).dropna()
        if len(columns) == 1:
            return list(pd.unique(labels.to_numpy()))
        return list(dict.fromkeys(labels.tolist()))

    def codes(self, variable_spec, categories) -> np.ndarray:
        """Position of every row label in `categories`, -1 for missing or unknown labels."""
        labels = self.labels(variable_spec)
        if len(split_variable_spec(variable_spec)) == 1:
            return pd.Categorical(labels, categories = categories).codes.astype(np.intp)

        position_by_label = dict((label, position) for position, label in enumerate(categories))
        return np.array(
            [position_by_label.get(label, -1) for label in labels.tolist()],
            dtype = np.intp,
            )

    def missing_counts(self, variable_specs) -> dict:
        missing_count_by_column = dict()
        for variable_spec in variable_specs:
            columns = split_variable_spec(variable_spec)
            self.check_columns(columns)
            for column in columns:
                missing_count_by_column[column] = int(self.data[column].isna().sum())
        return missing_count_by_column

    def check_complete(self, variable_specs):
        """Raise a ConfigurationError when a raking column holds missing values."""
        missing = dict(
            (column, count)
            for column, count in self.missing_counts(variable_specs).items()
            if count > 0
            )
        if missing:
            raise ConfigurationError(
                f"Raking variables should not have missing values, impute them first. Missing values by column: {missing}"
                )

    def weights(self, column = None) -> np.ndarray:
        """Weights as a float array, ones when there is no weight column.

        Args:
            column (str, optional): Weight column. Defaults to None to use the frame weight column.

        Returns:
            np.ndarray: A fresh array of weights
        """
        if column is None:
            column = self.weight_column
        if column is None:
            return np.ones(len(self.data), dtype = float)

        self.check_columns([column])
        series = self.data[column]
        if not is_numeric_dtype(series):
            raise ConfigurationError(f"Weight column {column} should be numeric, not {series.dtype}")
        weights = series.to_numpy(dtype = float, na_value = np.nan)
        missing_weight_observations = int(np.isnan(weights).sum())
        if missing_weight_observations > 0:
            raise ConfigurationError(f"{missing_weight_observations} observations have a missing weight in column {column}")
        negative_weight_observations = int((weights < 0).sum())
        if negative_weight_observations > 0:
            raise ConfigurationError(f"{negative_weight_observations} observations have a negative weight in column {column}")
        zero_weight_observations = int((weights == 0).sum())
        if zero_weight_observations > 0:
            log.info(f"{zero_weight_observations} observations have a zero weight in column {column}")
        return weights

    def weighted_distribution(self, variable_spec, weights = None, total = 100.0) -> pd.Series:
        """Share of the weight in each category, normalised to `total`.

        Declared categories without any weight are kept with a zero share.
        Rows with a missing label are left out.
        """
        categories = self.categories(variable_spec)
        if weights is None:
            weights = self.weights()
        weights = np.asarray(weights, dtype = float)
        if len(weights) != len(self.data):
            raise ConfigurationError(f"{len(weights)} weights for {len(self.data)} rows")

        codes = self.codes(variable_spec, categories)
        observed = codes >= 0
        mass = np.bincount(codes[observed], weights = weights[observed], minlength = len(categories))
        mass_sum = mass.sum()
        if mass_sum <= 0:
            raise ConfigurationError(f"Variable {variable_spec} has no weighted mass")
        index = pd.Index(categories, tupleize_cols = False, name = variable_spec)
        return pd.Series(total * mass / mass_sum, index = index, name = 'Freq')
