import numpy as np
import pandas as pd


education_categories = ['low', 'middle', 'high']
region_categories = ['north', 'south', 'east', 'west']


def create_sex_sample():
    """Four respondents, two men and two women, base weight 1."""
    return pd.DataFrame({
        'sex': ['M', 'M', 'F', 'F'],
        'weight': [1.0, 1.0, 1.0, 1.0],
        })


def create_benchmark_data_frame(size = 2000, seed = 216):
    """Create a weighted benchmark population with sex, education and region."""
    random_generator = np.random.default_rng(seed)
    return pd.DataFrame({
        'sex': random_generator.choice(['M', 'F'], size = size, p = [.48, .52]),
        'education': random_generator.choice(education_categories, size = size, p = [.3, .45, .25]),
        'region': random_generator.choice(region_categories, size = size, p = [.2, .3, .25, .25]),
        'benchmark_weight': random_generator.uniform(.5, 2, size = size),
        })


def create_survey_data_frame(size = 600, seed = 42):
    """Create a survey sample whose composition differs from the benchmark one."""
    random_generator = np.random.default_rng(seed)
    sex = random_generator.choice(['M', 'F'], size = size, p = [.35, .65])
    # Women of the sample are more educated than men
    education = np.where(
        sex == 'F',
        random_generator.choice(education_categories, size = size, p = [.15, .45, .4]),
        random_generator.choice(education_categories, size = size, p = [.35, .45, .2]),
        )
    return pd.DataFrame({
        'sex': sex,
        'education': education,
        'region': random_generator.choice(region_categories, size = size, p = [.3, .2, .3, .2]),
        'base_weight': random_generator.uniform(.8, 1.2, size = size),
        })
