import configparser
import logging
import os

from survey_weighting.errors import ConfigurationError

log = logging.getLogger(__name__)


raking_parameters = {
    'tolerance': 1e-6,
    'max_iterations': 1000,
    'epsilon': 1e-12,
    'relative': False,
    'population_total': None,
    'accept_nonconvergence': False,
    }

trimming_parameters = {
    'lower_bound': None,
    'upper_bound': None,
    'lower_quantile': None,
    'upper_quantile': None,
    'preserve_total': False,
    }

option_type_by_name = {
    'tolerance': float,
    'max_iterations': int,
    'epsilon': float,
    'relative': bool,
    'population_total': float,
    'accept_nonconvergence': bool,
    'lower_bound': float,
    'upper_bound': float,
    'lower_quantile': float,
    'upper_quantile': float,
    'preserve_total': bool,
    }


class Config(configparser.ConfigParser):
    config_ini = None

    def __init__(self, config_files_directory = None):
        configparser.ConfigParser.__init__(self)
        if config_files_directory is not None:
            config_ini = os.path.join(config_files_directory, 'config.ini')
            if not os.path.exists(config_ini):
                raise ConfigurationError(f"{config_ini} is not a valid path")
            self.config_ini = config_ini
            self.read([config_ini])

    def get_section_parameters(self, section, defaults):
        """Read the options of a section, typed after the defaults.

        Args:
            section (str): Section name, `raking` or `trimming`
            defaults (dict): Default values by option name

        Returns:
            dict: Parameters, defaults updated with the options found in the section
        """
        parameters = dict(defaults)
        if not self.has_section(section):
            return parameters

        for option in self.options(section):
            if option not in defaults:
                log.info(f"Ignoring unknown option {option} in section [{section}] of {self.config_ini}")
                continue
            option_type = option_type_by_name[option]
            try:
                if option_type is bool:
                    parameters[option] = self.getboolean(section, option)
                elif option_type is int:
                    parameters[option] = self.getint(section, option)
                else:
                    parameters[option] = self.getfloat(section, option)
            except ValueError as error:
                raise ConfigurationError(
                    f"Invalid value for option {option} in section [{section}] of {self.config_ini}: {error}"
                    ) from error
        return parameters


def get_parameters(config_files_directory = None) -> dict:
    """Default raking and trimming parameters, overridden by a config.ini when found.

    Args:
        config_files_directory (str, optional): Directory holding config.ini. Defaults to None to use the user configuration directory if any.

    Returns:
        dict: Raking and trimming parameters
    """
    if config_files_directory is None:
        from survey_weighting.paths import default_config_files_directory
        config_files_directory = default_config_files_directory
        if config_files_directory is not None and not os.path.exists(os.path.join(config_files_directory, 'config.ini')):
            config_files_directory = None

    config = Config(config_files_directory = config_files_directory)
    parameters = config.get_section_parameters('raking', raking_parameters)
    parameters.update(config.get_section_parameters('trimming', trimming_parameters))
    return parameters
