"""Hot-deck imputation of the raking variables.

Raking needs complete raking variables: missing values are filled beforehand by copying
the value of a randomly drawn donor of the same donor class.
"""

import logging

import numpy as np

from survey_weighting.errors import ConfigurationError
from survey_weighting.frames import CategoricalFrame, is_categorical

log = logging.getLogger(__name__)


def check_no_missing(data, variables):
    """Raise a ConfigurationError if any of the variables has missing values."""
    if isinstance(variables, str):
        variables = [variables]
    CategoricalFrame(data).check_complete(variables)


def mark_missing(series, missing_values = None):
    """Turn the missing markers (`"Refused"`, `99`...) into NaN, and drop them from the categories."""
    if not missing_values:
        return series
    if is_categorical(series):
        marked_categories = [value for value in missing_values if value in series.cat.categories]
        if not marked_categories:
            return series
        return series.cat.remove_categories(marked_categories)
    return series.mask(series.isin(missing_values))


def hot_deck_impute(data, variables, seed, donor_classes = None, weight_column = None, missing_values = None):
    """Fill the missing values of variables with values of random donors.

    Donors are drawn with replacement among the complete observations of the same donor class,
    with probabilities proportional to their weight when a weight column is given. A class
    without any donor borrows from the whole sample.

    Args:
        data (pd.DataFrame): Survey data
        variables (list): Variables to impute
        seed (int): Seed of the random generator. The imputation is deterministic given the seed.
        donor_classes (list, optional): Variables defining the donor classes. Defaults to None.
        weight_column (str, optional): Weights of the donors. Defaults to None.
        missing_values (list, optional): Values considered missing besides NaN. Defaults to None.

    Returns:
        pd.DataFrame: A copy of data with the variables fully populated
    """
    if seed is None:
        raise ConfigurationError("A seed is needed for a reproducible imputation")
    if isinstance(variables, str):
        variables = [variables]
    if donor_classes is None:
        donor_classes = []
    elif isinstance(donor_classes, str):
        donor_classes = [donor_classes]

    frame = CategoricalFrame(data, weight_column = weight_column)
    frame.check_columns(list(variables) + list(donor_classes))
    overlap = set(variables).intersection(donor_classes)
    if overlap:
        raise ConfigurationError(f"Variables {sorted(overlap)} cannot be imputed and define donor classes")

    weights = frame.weights()
    random_generator = np.random.default_rng(seed)
    imputed = data.copy()

    if donor_classes:
        class_by_observation = imputed.groupby(donor_classes, dropna = False, sort = True, observed = True).ngroup().to_numpy()
    else:
        class_by_observation = np.zeros(len(imputed), dtype = int)

    for variable in variables:
        series = mark_missing(imputed[variable], missing_values)
        is_missing = series.isna().to_numpy()
        recipients = np.flatnonzero(is_missing)
        if len(recipients) == 0:
            imputed[variable] = series
            continue

        all_donors = np.flatnonzero(~is_missing)
        if len(all_donors) == 0:
            raise ConfigurationError(f"Variable {variable} has no donor: all its values are missing")

        donor_by_recipient = np.empty(len(recipients), dtype = np.intp)
        for donor_class in np.unique(class_by_observation[recipients]):
            is_class_recipient = class_by_observation[recipients] == donor_class
            donors = all_donors[class_by_observation[all_donors] == donor_class]
            if len(donors) == 0:
                log.info(f"No donor for {variable} in donor class {donor_class}, drawing from the whole sample")
                donors = all_donors
            donor_weights = weights[donors]
            probabilities = donor_weights / donor_weights.sum() if donor_weights.sum() > 0 else None
            donor_by_recipient[is_class_recipient] = random_generator.choice(
                donors,
                size = int(is_class_recipient.sum()),
                replace = True,
                p = probabilities,
                )

        series = series.copy()
        series.iloc[recipients] = series.iloc[donor_by_recipient].to_numpy()
        imputed[variable] = series
        log.info(f"Imputed {len(recipients)} missing values of {variable}")

    return imputed
