import logging
import os

from xdg import BaseDirectory

from survey_weighting import survey_weighting_location

log = logging.getLogger(__name__)


# Configuration shipped with the tests
test_config_files_directory = os.path.join(
    survey_weighting_location,
    'survey_weighting',
    'tests',
    'data_files',
    )

# User configuration, looked up in $XDG_CONFIG_HOME then $XDG_CONFIG_DIRS. May be None.
default_config_files_directory = BaseDirectory.load_first_config('survey-weighting')

if default_config_files_directory is None:
    log.debug('No survey-weighting configuration directory found, using built-in defaults')
else:
    log.debug(f'Using default_config_files_directory = {default_config_files_directory}')
