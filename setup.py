#! /usr/bin/env python


"""A tool for calibrating survey weights on population benchmarks.

Raking targets, iterative proportional fitting, weight trimming and design effects
"""


from setuptools import find_packages, setup
from pathlib import Path

# Read the contents of our README file for PyPi
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

classifiers = """\
Development Status :: 2 - Pre-Alpha
License :: OSI Approved :: GNU Affero General Public License v3
Operating System :: POSIX
Programming Language :: Python
Programming Language :: Python :: 3.9
Programming Language :: Python :: 3.10
Programming Language :: Python :: 3.11
Topic :: Scientific/Engineering :: Information Analysis
"""

doc_lines = __doc__.split('\n')


setup(
    name = 'Survey-Weighting',
    version = '0.1.0',
    author = 'Survey Weighting Team',
    classifiers = [classifier for classifier in classifiers.split('\n') if classifier],
    description = doc_lines[0],
    keywords = 'survey weights raking calibration',
    license = 'http://www.fsf.org/licensing/licenses/agpl-3.0.html',
    long_description = long_description,
    long_description_content_type = 'text/markdown',

    # requirements: for conda, package names should follow the package match specifications (e.g. no space after ">=")
    # see https://conda.io/projects/conda/en/latest/user-guide/concepts/pkg-specs.html#package-match-specifications
    extras_require = {
        'dev': [
            'autopep8 >=2.0.2, < 3',
            'coveralls >=3.3.1, < 4.0',
            'flake8 >= 6.0.0, < 8.0',
            'flake8-bugbear >= 23.3.12, < 25.0',
            'flake8-docstrings >=1.7.0, < 2.0',
            'flake8-print >=5.0.0, < 6.0',
            'flake8-rst-docstrings >=0.3.0, < 0.4.0',
            'pytest >=8.3.3, < 9.0',
            'pytest-cov >= 4.0.0, < 7.0',
            ],
        },
    install_requires = [
        'configparser >= 5.3.0, < 8.0',
        'numpy >=1.24.3, < 3.0',
        'pandas >=2.0.3, < 3.0',
        'pyxdg >=0.28, < 0.29',
        'scipy >=1.10.1, < 2.0',
        ],
    packages = find_packages(),
    package_data = {
        'survey_weighting': ['tests/data_files/*.ini'],
        },
    zip_safe = False,
    )
