import itertools

import numpy as np
import pandas as pd
import pytest

from survey_weighting.design_effect import compute_design_effect
from survey_weighting.errors import ConfigurationError, NonConvergenceError, ZeroMassError
from survey_weighting.frames import CategoricalFrame
from survey_weighting.raking import rake, rake_with_diagnostics
from survey_weighting.targets import TargetTable, targets_from_dict
from survey_weighting.tests import create_sex_sample


def check_margins(sample, weights, targets, tolerance):
    frame = CategoricalFrame(sample)
    for target in targets.values():
        distribution = frame.weighted_distribution(target.name, weights = weights, total = target.total)
        for category, target_value in target.items():
            actual = dict(zip(distribution.index.tolist(), distribution.tolist()))[category]
            assert abs(actual - target_value) < tolerance, f"{target.name} {category}: {actual} != {target_value}"


def test_already_calibrated_sample():
    sample = create_sex_sample()
    targets = targets_from_dict({'sex': {'M': 50, 'F': 50}})
    weights, convergence = rake_with_diagnostics(sample, targets, base_weight = 'weight')

    assert (weights == 1).all()
    assert convergence.converged
    assert convergence.iterations == 1
    assert convergence.max_deviation == 0


def test_single_variable_raking_is_exact():
    sample = create_sex_sample()
    targets = targets_from_dict({'sex': {'M': 75, 'F': 25}})
    weights = rake(sample, targets, base_weight = 'weight')

    np.testing.assert_allclose(weights, [1.5, 1.5, .5, .5])
    assert compute_design_effect(weights).deff == pytest.approx(1.25)


def test_uniform_weights_without_base_weight():
    sample = create_sex_sample().drop(columns = 'weight')
    weights = rake(sample, targets_from_dict({'sex': {'M': 75, 'F': 25}}))
    np.testing.assert_allclose(weights, [1.5, 1.5, .5, .5])


def test_unmatched_target_category():
    sample = create_sex_sample()
    targets = targets_from_dict({'sex': {'M': 40, 'F': 40, 'Other': 20}})
    with pytest.raises(ConfigurationError, match = "Other"):
        rake(sample, targets, base_weight = 'weight')


def test_sample_category_absent_from_target():
    sample = create_sex_sample()
    sample.loc[3, 'sex'] = 'Other'
    with pytest.raises(ConfigurationError, match = "In the sample but not in the target: \\['Other'\\]"):
        rake(sample, targets_from_dict({'sex': {'M': 50, 'F': 50}}), base_weight = 'weight')


def test_zero_mass_category():
    sample = create_sex_sample()
    sample['sex'] = pd.Categorical(sample['sex'], categories = ['M', 'F', 'X'])
    targets = targets_from_dict({'sex': {'M': 35, 'F': 35, 'X': 30}})
    with pytest.raises(ZeroMassError) as excinfo:
        rake(sample, targets, base_weight = 'weight')

    assert excinfo.value.target == 'sex'
    assert excinfo.value.category == 'X'
    assert excinfo.value.target_proportion == 30


def test_zero_mass_from_zero_weights():
    sample = create_sex_sample()
    sample['weight'] = [1.0, 1.0, 0.0, 0.0]
    with pytest.raises(ZeroMassError) as excinfo:
        rake(sample, targets_from_dict({'sex': {'M': 70, 'F': 30}}), base_weight = 'weight')
    assert excinfo.value.category == 'F'


def test_zero_target_category_zeroes_weights():
    sample = create_sex_sample()
    sample.loc[3, 'sex'] = 'X'
    weights = rake(sample, targets_from_dict({'sex': {'M': 60, 'F': 40, 'X': 0}}), base_weight = 'weight')
    np.testing.assert_allclose(weights, [1.2, 1.2, 1.6, 0])


def test_convergence_for_any_target_order(survey_data_frame, targets):
    tolerance = 1e-6
    weights_by_order = dict()
    for order in itertools.permutations(targets.keys()):
        ordered_targets = [targets[name] for name in order]
        weights, convergence = rake_with_diagnostics(
            survey_data_frame, ordered_targets, base_weight = 'base_weight', tolerance = tolerance)
        assert convergence.converged
        assert convergence.max_deviation < tolerance
        assert list(convergence.deviation_by_target.keys()) == list(order)
        check_margins(survey_data_frame, weights, targets, tolerance)
        weights_by_order[order] = weights

    reference = weights_by_order[tuple(targets.keys())]
    for weights in weights_by_order.values():
        np.testing.assert_allclose(weights, reference, rtol = 1e-4)


def test_reraking_converged_weights(survey_data_frame, targets):
    tolerance = 1e-6
    weights = rake(survey_data_frame, targets, base_weight = 'base_weight', tolerance = tolerance / 100)
    sample = survey_data_frame.assign(raked_weight = weights)
    reraked_weights, convergence = rake_with_diagnostics(sample, targets, base_weight = 'raked_weight', tolerance = tolerance)

    assert convergence.iterations == 1
    assert np.abs(reraked_weights - weights).max() < tolerance


def test_raking_does_not_modify_sample(survey_data_frame, targets):
    sample = survey_data_frame.copy()
    rake(survey_data_frame, targets, base_weight = 'base_weight')
    pd.testing.assert_frame_equal(survey_data_frame, sample)


def test_total_weight_is_kept(survey_data_frame, targets):
    weights = rake(survey_data_frame, targets, base_weight = 'base_weight')
    assert weights.sum() == pytest.approx(survey_data_frame.base_weight.sum())


def test_population_total(survey_data_frame, targets):
    weights = rake(survey_data_frame, targets, base_weight = 'base_weight', population_total = 1e6)
    assert weights.sum() == pytest.approx(1e6)
    check_margins(survey_data_frame, weights, targets, 1e-6)


def test_fractions_and_percentages_give_same_weights():
    sample = create_sex_sample()
    sample['age'] = ['young', 'old', 'young', 'old']
    percentages = targets_from_dict({'sex': {'M': 45, 'F': 55}, 'age': {'young': 30, 'old': 70}})
    fractions = targets_from_dict({'sex': {'M': .45, 'F': .55}, 'age': {'young': .3, 'old': .7}}, total = 1)

    np.testing.assert_allclose(
        rake(sample, percentages, tolerance = 1e-8),
        rake(sample, fractions, tolerance = 1e-10),
        rtol = 1e-6,
        )


def test_relative_deviation(survey_data_frame, targets):
    weights, convergence = rake_with_diagnostics(
        survey_data_frame, targets, base_weight = 'base_weight', tolerance = 1e-8, relative = True)
    assert convergence.relative
    assert convergence.converged
    check_margins(survey_data_frame, weights, targets, 1e-5)


def test_non_convergence(survey_data_frame, targets):
    with pytest.raises(NonConvergenceError) as excinfo:
        rake(survey_data_frame, targets, base_weight = 'base_weight', tolerance = 1e-12, max_iterations = 1)

    error = excinfo.value
    assert error.iterations == 1
    assert error.max_deviation > error.tolerance
    assert len(error.weights) == len(survey_data_frame)
    assert not error.convergence.converged
    # The last iterate matches the last target of the cycle exactly
    distribution = CategoricalFrame(survey_data_frame).weighted_distribution('sex:region', weights = error.weights)
    target_by_category = dict(targets['sex:region'].items())
    for category, actual in zip(distribution.index.tolist(), distribution.tolist()):
        assert actual == pytest.approx(target_by_category[category])


def test_non_convergence_with_population_total(survey_data_frame, targets):
    with pytest.raises(NonConvergenceError) as excinfo:
        rake(
            survey_data_frame, targets, base_weight = 'base_weight', tolerance = 1e-12, max_iterations = 1,
            population_total = 1e6,
            )
    assert excinfo.value.weights.sum() == pytest.approx(1e6)


def test_missing_raking_values(survey_data_frame, targets):
    survey_data_frame.loc[0, 'education'] = np.nan
    with pytest.raises(ConfigurationError, match = "education"):
        rake(survey_data_frame, targets, base_weight = 'base_weight')


def test_inconsistent_target_totals():
    sample = create_sex_sample()
    sample['age'] = ['young', 'old', 'young', 'old']
    targets = [
        TargetTable('sex', {'M': 50, 'F': 50}),
        TargetTable('age', {'young': .5, 'old': .5}, total = 1),
        ]
    with pytest.raises(ConfigurationError, match = "same total"):
        rake(sample, targets)


@pytest.mark.parametrize("parameters", [
    dict(tolerance = 0),
    dict(max_iterations = 0),
    dict(epsilon = -1),
    dict(population_total = -10),
    ])
def test_invalid_parameters(parameters):
    with pytest.raises(ConfigurationError):
        rake(create_sex_sample(), targets_from_dict({'sex': {'M': 50, 'F': 50}}), **parameters)


def test_no_target():
    with pytest.raises(ConfigurationError):
        rake(create_sex_sample(), [])


def test_negative_base_weight():
    sample = create_sex_sample()
    sample.loc[0, 'weight'] = -1
    with pytest.raises(ConfigurationError, match = "negative"):
        rake(sample, targets_from_dict({'sex': {'M': 50, 'F': 50}}), base_weight = 'weight')


if __name__ == '__main__':
    import logging
    import sys
    logging.basicConfig(level = logging.DEBUG, stream = sys.stdout)
    test_single_variable_raking_is_exact()
