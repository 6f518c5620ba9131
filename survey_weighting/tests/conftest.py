from pathlib import Path

import pytest

from survey_weighting.targets import build_targets
from survey_weighting.tests import create_benchmark_data_frame, create_survey_data_frame


@pytest.fixture
def benchmark_data_frame():
    return create_benchmark_data_frame()


@pytest.fixture
def survey_data_frame():
    return create_survey_data_frame()


@pytest.fixture
def targets(benchmark_data_frame):
    return build_targets(
        benchmark_data_frame,
        ['sex', 'education', 'sex:region'],
        weight_column = 'benchmark_weight',
        )


@pytest.fixture
def config_files_directory(tmp_path: Path):
    """Fixture writing a config.ini with raking and trimming options."""
    config_ini = tmp_path / "config.ini"
    config_ini.write_text("""
[raking]
tolerance = 1e-8
max_iterations = 500
relative = false

[trimming]
upper_quantile = 0.99
preserve_total = true
""")
    return tmp_path
